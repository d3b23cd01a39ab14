import json
import re
from typing import Optional

from agent.llm.base import LLMClient, LLMResponse
from agent.modules.prompt_builder import PromptBuild
from agent.prompts import enhance as prompts


async def enhance(
    bundle: PromptBuild,
    llm: LLMClient,
    title: Optional[str] = None,
    article_type: str = "kultur",
) -> dict:
    """Ask the LLM for research suggestions on one prompt bundle."""
    bullets = "\n".join(f"- {b}" for b in bundle.bullets if b) or "(ingen)"
    user_prompt = prompts.USER_TEMPLATE.format(
        title=title or "(uden titel)",
        summary=bundle.summary,
        bullets=bullets,
        chunk=bundle.chunks[0] if bundle.chunks else "",
    )
    response: LLMResponse = await llm.complete(
        system=prompts.SYSTEM.format(article_type=article_type),
        user=user_prompt,
        max_tokens=800,
    )
    return _parse_json(response.content)


def _parse_json(raw: str) -> dict:
    """Extract JSON from LLM response, handling markdown code fences."""
    cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip(), flags=re.MULTILINE)
    cleaned = re.sub(r"\s*```$", "", cleaned.strip(), flags=re.MULTILINE)
    try:
        data = json.loads(cleaned.strip())
    except json.JSONDecodeError:
        match = re.search(r"\{.*\}", cleaned, re.DOTALL)
        if not match:
            return dict(prompts.FALLBACK)
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError:
            return dict(prompts.FALLBACK)
    if not isinstance(data, dict):
        return dict(prompts.FALLBACK)
    additions = data.get("additions")
    return {
        "summary": str(data.get("summary") or prompts.FALLBACK["summary"]),
        "additions": [str(a).strip() for a in additions if str(a).strip()] if isinstance(additions, list) else [],
    }
