from .openai_chat_client import OpenAIChatClient
from .vision_decision_service import VisionDecisionService, extract_json_object

__all__ = ["OpenAIChatClient", "VisionDecisionService", "extract_json_object"]
