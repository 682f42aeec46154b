"""Rubric template sent with every evaluation; kept apart from the pipeline so it can be swapped."""
import json
from dataclasses import dataclass, field
from pathlib import Path

# Report language -> language name the model understands
REPORT_LANG_NAMES: dict[str, str] = {
    "es": "Spanish",
    "en": "English",
    "tr": "Turkish",
    "pt": "Portuguese",
    "fr": "French",
    "de": "German",
    "it": "Italian",
}

DEFAULT_SYSTEM_INSTRUCTION = "You are a precise and strict academic evaluator. You return only valid JSON."

DEFAULT_RULES: list[tuple[str, str]] = [
    ("R1", "The video must open with a short story (yes/no; explain briefly, with timestamps if possible)."),
    ("R2", "The video must contain at most 3 bullet points (yes/no; count the bullets and explain)."),
    ("R3", "The video must leave the student an assignment (yes/no; describe it, or suggest one if missing)."),
]

RESPONSE_SCHEMA = """{
  "score": number (0-100),
  "summary": string,
  "findings": [
%s
  ],
  "suggestions": string[]
}"""


def _language_instruction(lang: str | None) -> str:
    name = REPORT_LANG_NAMES.get((lang or "").lower())
    if not name:
        return "Write every text field (summary, notes, suggestions) in Spanish."
    return f"Write every text field (summary, notes, suggestions) ONLY in {name}. JSON keys stay in English."


@dataclass(frozen=True)
class RubricTemplate:
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    rules: tuple[tuple[str, str], ...] = field(default_factory=lambda: tuple(DEFAULT_RULES))
    temperature: float = 0.2

    def render(self, lang: str | None = None) -> str:
        rule_lines = "\n".join(f"- {rid}: {text}" for rid, text in self.rules)
        findings = ",\n".join(
            f'    {{"ruleId": "{rid}", "ok": boolean, "note": string}}' for rid, _ in self.rules
        )
        return (
            "Evaluate the attached video against these rules:\n"
            f"{rule_lines}\n\n"
            f"{_language_instruction(lang)}\n\n"
            "Answer ONLY with JSON following this schema:\n"
            + RESPONSE_SCHEMA % findings
        )


def load_rubric(path: str | None) -> RubricTemplate:
    """
    Loads a rubric from a JSON file:
        {"system_instruction": "...", "temperature": 0.2, "rules": [{"id": "R1", "text": "..."}]}
    Missing keys keep their defaults; an empty path returns the default rubric.
    """
    if not path:
        return RubricTemplate()
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    default = RubricTemplate()
    rules = tuple((str(r["id"]), str(r["text"])) for r in raw.get("rules", [])) or default.rules
    return RubricTemplate(
        system_instruction=raw.get("system_instruction") or default.system_instruction,
        rules=rules,
        temperature=float(raw.get("temperature", default.temperature)),
    )
