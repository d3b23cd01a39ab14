from agent.llm.factory import get_llm_client

__all__ = ["get_llm_client"]
