import re
import structlog
from functools import lru_cache
from typing import Optional

from openai import AsyncOpenAI
from pydantic import BaseModel

from schemas import ProfileDraft


logger = structlog.get_logger(__name__)

# --- Application Info for OpenRouter ---
APP_NAME = "Portfolio Builder"
APP_URL = "https://github.com/portfolio-builder/portfolio-builder-api"

# --- Model Configuration ---
MODEL_CONFIG = {
    "resume_parse": {
        "temperature": 0.0,
        "top_p": 1,
        "max_tokens": 4096,
    },
}
COMMON_OPTS = {"seed": 123}


@lru_cache
def get_client(api_key: str) -> AsyncOpenAI:
    """OpenAI client pointed at OpenRouter, one per API key."""
    return AsyncOpenAI(
        base_url="https://openrouter.ai/api/v1",
        api_key=api_key,
        default_headers={
            "HTTP-Referer": APP_URL,
            "X-Title": APP_NAME,
        },
    )


# --- Structured Output Examples ---
PARSED_RESUME_OUTPUT_EXAMPLE = """{
    \"name\": \"Jane Doe\",
    \"headline\": \"Data Engineer\",
    \"bio\": \"Data engineer focused on real-time analytics platforms.\",
    \"location\": \"Gainesville, FL\",
    \"skills\": [\"Python\", \"SQL\", \"FastAPI\"],
    \"projects\": [
        {
            \"id\": \"proj-1\",
            \"title\": \"Realtime Analytics Pipeline\",
            \"description\": \"Streaming pipeline improving team productivity by 20%\",
            \"tech\": [\"Kafka\", \"Python\"],
            \"link\": \"\",
            \"repo\": \"\"
        }
    ],
    \"experience\": [
        {
            \"id\": \"exp-1\",
            \"company\": \"Bob's Company\",
            \"role\": \"Data Engineer\",
            \"startDate\": \"2021\",
            \"endDate\": \"Present\",
            \"bullets\": [\"Led a team of 5 engineers building a new data platform\"]
        }
    ],
    \"education\": [
        {
            \"id\": \"edu-1\",
            \"school\": \"University of Florida\",
            \"degree\": \"B.S. Computer Science\",
            \"startYear\": \"2015\",
            \"endYear\": \"2019\"
        }
    ],
    \"contact\": {
        \"email\": \"jane@example.com\",
        \"phone\": \"\",
        \"website\": \"\",
        \"github\": \"\",
        \"linkedin\": \"\"
    }
}"""
PARSED_RESUME_OUTPUT_EXAMPLE = re.sub(
    r"\n +", "", PARSED_RESUME_OUTPUT_EXAMPLE
).replace("\n", "")


async def call_llm(
    api_key: str,
    model: str,
    system_prompt: str,
    user_prompt: str,
    model_config: dict,
    response_model: Optional[type[BaseModel]] = None,
) -> Optional[BaseModel]:
    """Call LLM for a specific task and return the parsed structured output."""

    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]

    response = await get_client(api_key).chat.completions.parse(
        model=model,
        messages=messages,
        response_format=response_model,
        **model_config,
        **COMMON_OPTS,
    )
    return response.choices[0].message.parsed


async def call_llm_for_resume_parsing(
    resume_text: str, api_key: str, model: str
) -> Optional[ProfileDraft]:
    """Call LLM for structured resume parsing into a portfolio profile draft."""

    system_prompt = f"""You are a resume parser. Your task is to extract a portfolio profile from the provided resume text.
Example output: {PARSED_RESUME_OUTPUT_EXAMPLE}
Use an empty string for any value the resume does not state and an empty list for missing lists. Do not invent contact details.
Give every project, experience and education entry a short unique id such as "proj-1", "exp-1", "edu-1".
The bio should be one or two sentences written in the first person, based only on the resume."""
    user_prompt = f"Please parse this resume:\n\n{resume_text}"

    parsed = await call_llm(
        api_key=api_key,
        model=model,
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        model_config=MODEL_CONFIG["resume_parse"],
        response_model=ProfileDraft,
    )
    logger.info("LLM resume parse finished", parsed=parsed is not None)
    return parsed
