import json
import logging
import re
from typing import Any, List, Optional

from openai import OpenAI

from wildlife_finder import config
from wildlife_finder.models import DisambiguationOption, Organization
from wildlife_finder.services.collaborators import (
    GLOBAL_SCOPE,
    AmbiguityVerdict,
    CollaboratorError,
    DirectoryOrganizationFinder,
    OrganizationFinder,
)

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)
_OPTION_LINE = re.compile(r"^\s*\d+\.\s*([^-]+?)\s*-\s*([^-]+?)\s*-\s*([^-]+?)(?:\s*-\s*(.+?))?\s*$")

AMBIGUITY_SYSTEM_PROMPT = (
    "You are a location disambiguation expert. "
    "Determine if a location name is ambiguous and needs clarification."
)

AMBIGUITY_PROMPT_TEMPLATE = """Location: "{phrase}"

Is this location name ambiguous (meaning there are multiple well-known places with this exact name)?

If YES, provide 2-4 most common options in this exact format:

NEEDS_DISAMBIGUATION
1. Full Location Name - Description - Country - Region(optional)
2. Full Location Name - Description - Country - Region(optional)

If NO (unambiguous or very clearly refers to one major place), respond:

NO_DISAMBIGUATION_NEEDED

Examples:
- "Paris" -> NEEDS_DISAMBIGUATION (Paris, France vs Paris, Texas)
- "Tokyo" -> NO_DISAMBIGUATION_NEEDED (clearly refers to Tokyo, Japan)
- "Birmingham" -> NEEDS_DISAMBIGUATION (Birmingham, England vs Birmingham, Alabama)"""

INPUT_TYPE_SYSTEM_PROMPT = (
    "You classify short chat messages for a wildlife conservation assistant. "
    "Reply with exactly one word: ANIMAL if the message names an animal or species, "
    "LOCATION if it names a place."
)

ORGANIZATIONS_SYSTEM_PROMPT = (
    "You are a conservation organization expert. Only recommend real, legitimate organizations "
    "you are confident exist. Return strict JSON only: "
    '{"organizations": [{"name": "...", "website": "https://...", "description": "..."}]}. '
    "Limit to 5 organizations, prioritizing local and regional groups and the relevant "
    "government wildlife agency."
)


class LLMClient:
    """Thin wrapper over the OpenAI Responses API; disabled without an API key."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = config.OPENAI_MODEL,
        client: Optional[Any] = None,
    ) -> None:
        self.model = model
        self._owns_client = client is None
        if client is not None:
            self.client = client
        else:
            key = config.load_openai_api_key() if api_key is None else api_key
            self.client = OpenAI(api_key=key, timeout=config.HTTP_TIMEOUT_SECONDS) if key else None
        self.available = self.client is not None
        if not self.available:
            logger.warning(
                "LLM disabled: set OPENAI_API_KEY (or OPENAI_API_KEY_FILE) to enable semantic classification."
            )

    def close(self) -> None:
        if self._owns_client and self.client is not None:
            self.client.close()

    def complete(self, system_prompt: str, user_prompt: str, temperature: float = 0.1) -> str:
        if self.client is None:
            raise CollaboratorError("llm", "not configured")
        response = self.client.responses.create(
            model=self.model,
            input=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
        )
        return getattr(response, "output_text", "") or ""


class LLMInputTypeClassifier:
    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm

    @property
    def available(self) -> bool:
        return self.llm.available

    def classify_input_type(self, message: str) -> str:
        verdict = self.llm.complete(INPUT_TYPE_SYSTEM_PROMPT, message, temperature=0.0)
        return verdict.strip().split()[0].upper() if verdict.strip() else ""


class LLMAmbiguityChecker:
    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm

    @property
    def available(self) -> bool:
        return self.llm.available

    def classify_ambiguity(self, phrase: str) -> AmbiguityVerdict:
        if not self.llm.available:
            return AmbiguityVerdict(ambiguous=False)
        text = self.llm.complete(AMBIGUITY_SYSTEM_PROMPT, AMBIGUITY_PROMPT_TEMPLATE.format(phrase=phrase))
        if "NEEDS_DISAMBIGUATION" not in text:
            return AmbiguityVerdict(ambiguous=False)
        options = parse_disambiguation_options(text)
        return AmbiguityVerdict(ambiguous=len(options) >= 2, options=options)


def parse_disambiguation_options(text: str) -> List[DisambiguationOption]:
    """Parse `N. Name - Description - Country - Region` lines; region is optional."""
    options: List[DisambiguationOption] = []
    for line in text.splitlines():
        match = _OPTION_LINE.match(line)
        if not match:
            continue
        name, description, country, region = match.groups()
        options.append(
            DisambiguationOption(
                display_name=name.strip(),
                search_query=name.strip(),
                description=description.strip(),
                country=country.strip(),
                region=region.strip() if region and region.strip() else None,
            )
        )
    return options


class LLMOrganizationFinder:
    def __init__(
        self,
        llm: LLMClient,
        fallback: Optional[OrganizationFinder] = None,
        limit: int = 6,
    ) -> None:
        self.llm = llm
        self.fallback = fallback or DirectoryOrganizationFinder()
        self.limit = limit

    def close(self) -> None:
        self.llm.close()

    def fetch_organizations(self, animal_name: str, scope_name: str) -> List[Organization]:
        fallback_orgs = self.fallback.fetch_organizations(animal_name, scope_name)
        if not self.llm.available:
            return fallback_orgs[: self.limit]

        where = "anywhere in the world" if scope_name == GLOBAL_SCOPE else f"in or near {scope_name}"
        prompt = f"Find conservation organizations that help protect the {animal_name} {where}."
        try:
            text = self.llm.complete(ORGANIZATIONS_SYSTEM_PROMPT, prompt)
            found = self._parse_organizations(text)
        except Exception:
            logger.exception("Organization lookup via LLM failed for %s; using directory", animal_name)
            found = []

        merged: List[Organization] = []
        seen: set[str] = set()
        for org in found + fallback_orgs:
            key = org.name.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            merged.append(org)
        return merged[: self.limit]

    @staticmethod
    def _parse_organizations(text: str) -> List[Organization]:
        match = _JSON_BLOCK.search(text or "")
        if not match:
            return []
        data = json.loads(match.group(0))
        items = data.get("organizations", []) if isinstance(data, dict) else []
        organizations: List[Organization] = []
        for item in items if isinstance(items, list) else []:
            if not isinstance(item, dict) or not str(item.get("name") or "").strip():
                continue
            organizations.append(
                Organization(
                    name=str(item["name"]).strip(),
                    website=str(item.get("website") or "").strip() or None,
                    description=str(item.get("description") or "").strip(),
                )
            )
        return organizations
