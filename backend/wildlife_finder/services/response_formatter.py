from typing import List

from wildlife_finder import config
from wildlife_finder.models import Species
from wildlife_finder.services.outcomes import (
    ConversationOutcome,
    DisambiguationPrompt,
    NeedsAnimalLocation,
    NeedsLocation,
    ShowOrganizations,
    ShowSpecies,
    TurnFailed,
)

LOCATION_PROMPT = 'Please tell me your city and state or country (e.g., "Las Vegas" or "Denver, Colorado").'
UNAVAILABLE_MESSAGE = "Wildlife services are temporarily unavailable. Please try again in a moment."


def species_label(species: Species) -> str:
    status = (species.conservation_status or "").strip()
    if status and status.lower() != "unknown":
        return f"{species.common_name} ({status})"
    return species.common_name


class ResponseFormatter:
    """Renders conversation outcomes as chat text. Holds no conversation logic."""

    def __init__(
        self,
        max_species: int = config.MAX_DISPLAYED_SPECIES,
        max_organizations: int = config.MAX_DISPLAYED_ORGANIZATIONS,
    ) -> None:
        self.max_species = max_species
        self.max_organizations = max_organizations

    def render(self, outcome: ConversationOutcome) -> str:
        if isinstance(outcome, NeedsLocation):
            return self._needs_location(outcome)
        if isinstance(outcome, DisambiguationPrompt):
            return self._disambiguation(outcome)
        if isinstance(outcome, ShowSpecies):
            return self._species(outcome)
        if isinstance(outcome, NeedsAnimalLocation):
            return self._animal_location(outcome)
        if isinstance(outcome, ShowOrganizations):
            return self._organizations(outcome)
        if isinstance(outcome, TurnFailed):
            return UNAVAILABLE_MESSAGE
        raise TypeError(f"Unsupported conversation outcome: {type(outcome).__name__}")

    def _needs_location(self, outcome: NeedsLocation) -> str:
        if outcome.reason == "restart":
            lead = "Let's start a new search. **Where are you located?**"
        elif outcome.reason == "no-species":
            lead = f"I couldn't find protected species near {outcome.query}. Try a nearby city or a larger region."
        elif outcome.reason == "not-found":
            lead = outcome.detail or "I couldn't find that place."
        else:
            lead = "**Where are you located?**"
        lines = [lead, LOCATION_PROMPT, "You can also name an animal to find organizations that protect it."]
        return "\n".join(lines)

    def _disambiguation(self, outcome: DisambiguationPrompt) -> str:
        lines: List[str] = []
        if outcome.detail:
            lines.append(outcome.detail)
        elif outcome.unresolved:
            lines.append("I didn't catch which place you meant.")
        lines.append("**I found multiple places with that name. Which one did you mean?**")
        lines.append("")
        for index, option in enumerate(outcome.options, start=1):
            lines.append(f"**{index}.** {option.display_name}")
            if option.description:
                lines.append(f"   {option.description}")
        lines.append("")
        lines.append("Please reply with the **number** (1, 2, etc.) or the name of your intended location.")
        return "\n".join(lines)

    def _species(self, outcome: ShowSpecies) -> str:
        lines: List[str] = []
        if outcome.reason == "non-animal-input":
            lines.append("That doesn't look like an animal name. Please pick one from the list:")
        elif outcome.reason == "no-match":
            lines.append("I couldn't match that to an animal on the list. Please choose one of these:")
        else:
            lines.append(f"Here are endangered and protected animals near {outcome.location.display_name}:")
        lines.append("")
        for index, species in enumerate(outcome.species[: self.max_species], start=1):
            lines.append(f"{index}. {species_label(species)}")
        lines.append("")
        lines.append(
            "Select an animal to learn about conservation organizations, "
            "or tell me a different location to search there instead."
        )
        return "\n".join(lines)

    def _animal_location(self, outcome: NeedsAnimalLocation) -> str:
        name = outcome.animal.common_name
        lines: List[str] = []
        if outcome.detail:
            lines.append(outcome.detail)
        elif outcome.retry:
            lines.append("I still need a place to search.")
        lines.append(f"Where should I look for organizations that help protect the **{name}**?")
        lines.append('Reply with a city, state, or country, or say "worldwide" for global organizations.')
        return "\n".join(lines)

    def _organizations(self, outcome: ShowOrganizations) -> str:
        name = outcome.animal.common_name
        if outcome.global_scope:
            lines = [f"Here are conservation organizations working worldwide to protect the {name}:", ""]
        else:
            lines = [f"Here are conservation organizations near {outcome.scope} that help protect the {name}:", ""]

        organizations = outcome.organizations[: self.max_organizations]
        if not organizations:
            lines.append(
                "I couldn't find specific organizations, but your state or national wildlife agency "
                f"is a good place to start helping the {name}."
            )
        for index, organization in enumerate(organizations, start=1):
            lines.append(f"{index}. **{organization.name}**")
            if organization.website:
                lines.append(f"   Website: {organization.website}")
            if organization.description:
                lines.append(f"   {organization.description}")
        lines.append("")
        lines.append("Send any message to start a new search.")
        return "\n".join(lines)
