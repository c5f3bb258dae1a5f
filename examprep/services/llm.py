import asyncio, json
from functools import lru_cache
from openai import OpenAI
from ..settings import settings

MOCK_QUESTIONS = {
    "questions": [
        {
            "content": "Which layer handles routing on the Internet?",
            "options": ["Physical", "Data Link", "Network", "Transport"],
            "correctAnswer": "Network",
            "explanation": "IP routing occurs at Layer 3.",
        },
        {
            "content": "What does the TCP three-way handshake establish?",
            "options": ["A session key", "A connection", "A route", "A DNS record"],
            "correctAnswer": "A connection",
            "explanation": "SYN, SYN-ACK, ACK set up a reliable connection.",
        },
    ]
}

@lru_cache(maxsize=1)
def _client() -> OpenAI:
    return OpenAI(api_key=settings.OPENAI_API_KEY)

def _mock_reply(messages, response_format):
    name = ((response_format or {}).get("json_schema") or {}).get("name", "")
    if name == "question_batch":
        return json.dumps(MOCK_QUESTIONS)
    if name == "grading":
        return json.dumps({"isCorrect": True, "feedback": "MOCK: matches the model answer."})
    return "MOCK: the correct answer follows directly from the definition."

def _llm_sync(messages, *, max_tokens=400, temperature=0.2, response_format=None):
    if settings.MOCK_MODE:
        return _mock_reply(messages, response_format)
    kw = {}
    if response_format is not None:
        kw["response_format"] = response_format
    resp = _client().chat.completions.create(
        model=settings.OPENAI_MODEL,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        **kw,
    )
    return resp.choices[0].message.content

async def llm(messages, **kw):
    return await asyncio.to_thread(_llm_sync, messages, **kw)
