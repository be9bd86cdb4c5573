from __future__ import annotations

OPENCODE_DEFAULT_MODEL = "gpt-5"

_OPENROUTER_SLUGS: dict[str, str] = {
    "claude-sonnet-4-5": "anthropic/claude-sonnet-4.5",
    "claude-opus-4-5": "anthropic/claude-opus-4.5",
    "claude-sonnet-4-20250514": "anthropic/claude-sonnet-4-20250514",
    "claude-opus-4-20250514": "anthropic/claude-opus-4-20250514",
    "claude-3-5-sonnet-20241022": "anthropic/claude-3.5-sonnet",
    "claude-3-opus-20240229": "anthropic/claude-3-opus",
    "claude-3-sonnet-20240229": "anthropic/claude-3-sonnet",
    "claude-3-haiku-20240307": "anthropic/claude-3-haiku",
    "gpt-4o": "openai/gpt-4o",
    "gpt-4o-mini": "openai/gpt-4o-mini",
    "gpt-4-turbo": "openai/gpt-4-turbo",
    "gpt-4": "openai/gpt-4",
    "gpt-3.5-turbo": "openai/gpt-3.5-turbo",
    "gpt-5": "openai/gpt-4o",
}

_NATIVE_IDS: dict[str, str] = {
    "claude-sonnet-4-5": "anthropic/claude-sonnet-4-20250514",
    "claude-opus-4-5": "anthropic/claude-opus-4-20250514",
    "claude-sonnet-4-20250514": "anthropic/claude-sonnet-4-20250514",
    "claude-opus-4-20250514": "anthropic/claude-opus-4-20250514",
    "claude-3-5-sonnet-20241022": "anthropic/claude-3-5-sonnet-20241022",
    "claude-3-opus-20240229": "anthropic/claude-3-opus-20240229",
    "claude-3-sonnet-20240229": "anthropic/claude-3-sonnet-20240229",
    "claude-3-haiku-20240307": "anthropic/claude-3-haiku-20240307",
    "gpt-4o": "openai/gpt-4o",
    "gpt-4o-mini": "openai/gpt-4o-mini",
    "gpt-4-turbo": "openai/gpt-4-turbo",
    "gpt-4": "openai/gpt-4",
    "gpt-3.5-turbo": "openai/gpt-3.5-turbo",
    "gpt-5": "openai/gpt-4o",
}


def _looks_anthropic(model: str) -> bool:
    return model.startswith("claude-") or any(w in model for w in ("sonnet", "opus", "haiku"))


def map_opencode_model(model: str, *, openrouter: bool) -> str:
    """
    Translate a UI model name into an OpenCode `provider/model` id.

    With the OpenRouter gateway every id is prefixed `openrouter/`; otherwise native
    `anthropic/...` or `openai/...` ids are used. Unknown names are passed through with the
    best-guess provider prefix.
    """

    if openrouter:
        slug = _OPENROUTER_SLUGS.get(model)
        if slug:
            return f"openrouter/{slug}"
        if "/" in model:
            return f"openrouter/{model}"
        if _looks_anthropic(model):
            return f"openrouter/anthropic/{model}"
        if model.startswith("gpt-"):
            return f"openrouter/openai/{model}"
        return f"openrouter/{model}"

    native = _NATIVE_IDS.get(model)
    if native:
        return native
    if "/" in model:
        return model
    if _looks_anthropic(model):
        return f"anthropic/{model}"
    if model.startswith("gpt-"):
        return f"openai/{model}"
    return model


def normalize_openrouter_base_url(base_url: str) -> str:
    """OpenRouter's OpenAI-compatible API lives under `/api/v1`."""

    if "openrouter.ai" not in base_url or base_url.endswith("/v1"):
        return base_url
    if base_url.rstrip("/").endswith("/api"):
        return base_url.rstrip("/") + "/v1"
    return base_url + ("v1" if base_url.endswith("/") else "/v1")
