import json, re
from ..schemas import GeneratedBatch, GradingResult

def _clean(s: str) -> str:
    return re.sub(r"```(json|JSON)?|```", "", s or "").strip()

def parse_questions(s: str) -> GeneratedBatch:
    data = json.loads(_clean(s))
    # some models drop the wrapper object and return the bare array
    if isinstance(data, list):
        data = {"questions": data}
    return GeneratedBatch.model_validate(data)

def parse_grading(s: str) -> GradingResult:
    return GradingResult.model_validate(json.loads(_clean(s)))
