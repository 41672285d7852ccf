from .main import AnswerService

__all__ = ["AnswerService"]
