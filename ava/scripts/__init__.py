from ava.scripts.generator import STAGE_COUNTS, UI_TYPES, generate, max_stage_for

__all__ = ["STAGE_COUNTS", "UI_TYPES", "generate", "max_stage_for"]
