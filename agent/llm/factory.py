from agent.llm.base import LLMClient


def get_llm_client() -> LLMClient:
    from config import settings

    provider = settings.llm_provider.lower()

    if provider == "openai":
        from agent.llm.openai_client import OpenAIClient
        return OpenAIClient(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url or None,
        )

    if provider == "anthropic":
        from agent.llm.anthropic_client import AnthropicClient
        return AnthropicClient(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
        )

    if provider == "custom":
        from agent.llm.openai_client import OpenAIClient
        if not settings.openai_base_url:
            raise RuntimeError("OPENAI_BASE_URL must be set when LLM_PROVIDER=custom.")
        return OpenAIClient(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
        )

    raise ValueError(f"Unknown LLM_PROVIDER: {provider!r}")
