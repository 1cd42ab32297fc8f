"""Tests for core/llm.py — llama.cpp and hosted-provider chat backends."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

MESSAGES = [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}]


def _llamacpp(**overrides):
    from lifestream.core.config import LlamaCppConfig
    from lifestream.core.llm import LlamaCppBackend

    cfg = LlamaCppConfig(**{"base_url": "http://127.0.0.1:8080/", "model": "qwen", **overrides})
    return LlamaCppBackend(cfg, timeout=5)


def _response(status: int = 200, payload=None, text: str = ""):
    resp = MagicMock()
    resp.status_code = status
    resp.is_success = 200 <= status < 300
    resp.text = text
    resp.reason_phrase = "Error"
    resp.json.return_value = payload
    return resp


def _ok(content):
    return _response(payload={"choices": [{"message": {"content": content}}]})


class TestLlamaCppBackend:
    @patch("httpx.post")
    def test_posts_openai_style_body(self, mock_post):
        mock_post.return_value = _ok("## Cues\n- a")
        backend = _llamacpp()

        result = backend.complete(MESSAGES)

        assert result == "## Cues\n- a"
        args, kwargs = mock_post.call_args
        assert args[0] == "http://127.0.0.1:8080/v1/chat/completions"
        assert kwargs["json"] == {"model": "qwen", "temperature": 0.3, "messages": MESSAGES}
        assert kwargs["timeout"] == 5
        assert "authorization" not in kwargs["headers"]

    @patch("httpx.post")
    def test_bearer_token_and_temperature_override(self, mock_post):
        mock_post.return_value = _ok("ok")
        backend = _llamacpp(api_key="secret")

        backend.complete(MESSAGES, temperature=0.2)

        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"]["authorization"] == "Bearer secret"
        assert kwargs["json"]["temperature"] == 0.2

    @patch("httpx.post")
    def test_strips_thinking(self, mock_post):
        mock_post.return_value = _ok("<think>hmm</think>\nanswer")

        assert _llamacpp().complete(MESSAGES) == "answer"

    @patch("httpx.post")
    def test_only_thinking_is_unavailable(self, mock_post):
        from lifestream.core.errors import UpstreamUnavailable

        mock_post.return_value = _ok("<think>hmm</think>")

        with pytest.raises(UpstreamUnavailable):
            _llamacpp().complete(MESSAGES)

    @patch("httpx.post")
    def test_non_2xx(self, mock_post):
        from lifestream.core.errors import UpstreamUnavailable

        mock_post.return_value = _response(status=500, text="model not loaded")

        with pytest.raises(UpstreamUnavailable) as exc_info:
            _llamacpp().complete(MESSAGES)

        err = exc_info.value
        assert err.status == 500
        assert err.backend == "llama.cpp"
        assert "model not loaded" in err.message
        assert err.url.endswith("/v1/chat/completions")

    @patch("httpx.post")
    def test_timeout(self, mock_post):
        from lifestream.core.errors import UpstreamUnavailable

        mock_post.side_effect = httpx.ReadTimeout("slow")

        with pytest.raises(UpstreamUnavailable, match="Timed out"):
            _llamacpp().complete(MESSAGES)

    @patch("httpx.post")
    def test_connection_error(self, mock_post):
        from lifestream.core.errors import UpstreamUnavailable

        mock_post.side_effect = httpx.ConnectError("refused")

        with pytest.raises(UpstreamUnavailable, match="Failed to reach"):
            _llamacpp().complete(MESSAGES)

    @patch("httpx.post")
    def test_invalid_json(self, mock_post):
        from lifestream.core.errors import UpstreamUnavailable

        resp = _response()
        resp.json.side_effect = ValueError("bad json")
        mock_post.return_value = resp

        with pytest.raises(UpstreamUnavailable, match="Invalid JSON"):
            _llamacpp().complete(MESSAGES)

    @patch("httpx.post")
    def test_missing_content(self, mock_post):
        from lifestream.core.errors import UpstreamUnavailable

        mock_post.return_value = _response(payload={"choices": []})

        with pytest.raises(UpstreamUnavailable, match="missing generated content"):
            _llamacpp().complete(MESSAGES)


class TestProviderBackend:
    def _backend(self, mock_openai_cls, **overrides):
        from lifestream.core.config import ProviderConfig
        from lifestream.core.llm import ProviderBackend

        cfg = ProviderConfig(**{
            "api_key": "sk-test",
            "base_url": "https://api.deepseek.com",
            "model_id": "deepseek-chat",
            **overrides,
        })
        return ProviderBackend(cfg, timeout=7)

    @patch("openai.OpenAI")
    def test_basic_call(self, mock_openai_cls):
        mock_client = MagicMock()
        mock_openai_cls.return_value = mock_client
        mock_response = MagicMock()
        mock_response.choices = [MagicMock()]
        mock_response.choices[0].message.content = "report"
        mock_client.chat.completions.create.return_value = mock_response

        backend = self._backend(mock_openai_cls)
        result = backend.complete(MESSAGES)

        assert result == "report"
        assert backend.url == "https://api.deepseek.com/chat/completions"
        mock_openai_cls.assert_called_once_with(
            api_key="sk-test",
            base_url="https://api.deepseek.com",
            timeout=7,
            max_retries=0,
        )
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "deepseek-chat"
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"] == MESSAGES

    @patch("openai.OpenAI")
    def test_configured_temperature(self, mock_openai_cls):
        backend = self._backend(mock_openai_cls, temperature=0.7)
        assert backend.default_temperature == 0.7

    @patch("openai.OpenAI")
    def test_status_error(self, mock_openai_cls):
        import openai

        from lifestream.core.errors import UpstreamUnavailable

        request = httpx.Request("POST", "https://api.deepseek.com/chat/completions")
        response = httpx.Response(401, request=request)
        mock_client = MagicMock()
        mock_openai_cls.return_value = mock_client
        mock_client.chat.completions.create.side_effect = openai.APIStatusError(
            "bad key", response=response, body=None
        )

        with pytest.raises(UpstreamUnavailable) as exc_info:
            self._backend(mock_openai_cls).complete(MESSAGES)
        assert exc_info.value.status == 401
        assert exc_info.value.backend == "provider"

    @patch("openai.OpenAI")
    def test_connection_error(self, mock_openai_cls):
        import openai

        from lifestream.core.errors import UpstreamUnavailable

        request = httpx.Request("POST", "https://api.deepseek.com/chat/completions")
        mock_client = MagicMock()
        mock_openai_cls.return_value = mock_client
        mock_client.chat.completions.create.side_effect = openai.APIConnectionError(request=request)

        with pytest.raises(UpstreamUnavailable, match="Failed to reach"):
            self._backend(mock_openai_cls).complete(MESSAGES)

    @patch("openai.OpenAI")
    def test_none_content(self, mock_openai_cls):
        from lifestream.core.errors import UpstreamUnavailable

        mock_client = MagicMock()
        mock_openai_cls.return_value = mock_client
        mock_response = MagicMock()
        mock_response.choices = [MagicMock()]
        mock_response.choices[0].message.content = None
        mock_client.chat.completions.create.return_value = mock_response

        with pytest.raises(UpstreamUnavailable):
            self._backend(mock_openai_cls).complete(MESSAGES)


class TestCreateBackend:
    def test_selects_llamacpp(self, tmp_path):
        from lifestream.core.config import parse_config
        from lifestream.core.llm import LlamaCppBackend, create_backend

        config = parse_config({
            "vault_path": str(tmp_path),
            "llamacpp": {"base_url": "http://localhost:8080", "model": "m"},
            "pipeline": {"request_timeout": 30},
        })
        backend = create_backend(config)

        assert isinstance(backend, LlamaCppBackend)
        assert backend.timeout == 30

    @patch("openai.OpenAI")
    def test_selects_provider(self, mock_openai_cls, tmp_path):
        from lifestream.core.config import parse_config
        from lifestream.core.llm import ProviderBackend, create_backend

        config = parse_config({
            "vault_path": str(tmp_path),
            "llm": {"provider": "provider"},
            "provider": {"api_key": "k", "base_url": "https://x", "model_id": "m"},
        })

        assert isinstance(create_backend(config), ProviderBackend)
