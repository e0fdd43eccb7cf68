"""Questionnaire builder: sections, questions and conditional visibility rules."""

from .answers import AnswerSnapshot  # noqa: F401
from .authoring import QuestionnaireService  # noqa: F401
from .evaluator import VisibilityEvaluator, evaluate_visibility, is_banner_only  # noqa: F401
from .models import (  # noqa: F401
    AnswerOption,
    ConditionalLogic,
    Question,
    QuestionTarget,
    Section,
    SectionTarget,
    Verdict,
)
from .ordering import OrderingService, SiblingScope  # noqa: F401
from .rule_validator import RuleComparison, validate_rule  # noqa: F401
from .store import LocalJsonBackend, QuestionnaireStore, RuleStore  # noqa: F401
