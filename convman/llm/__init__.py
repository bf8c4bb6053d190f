from convman.llm.base import LLMClient, Message, Response, Role
from convman.llm.factory import create_llm_client

__all__ = ["LLMClient", "Message", "Response", "Role", "create_llm_client"]
