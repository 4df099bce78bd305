import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from wildlife_finder import config
from wildlife_finder.models import Location, Session, Species
from wildlife_finder.services import gazetteer
from wildlife_finder.services.collaborators import (
    GLOBAL_SCOPE,
    CollaboratorError,
    INaturalistSpeciesSource,
    NominatimGeocoder,
    OrganizationFinder,
    SpeciesSource,
)
from wildlife_finder.services.input_classifier import InputClassifier
from wildlife_finder.services.llm_client import (
    LLMAmbiguityChecker,
    LLMClient,
    LLMInputTypeClassifier,
    LLMOrganizationFinder,
)
from wildlife_finder.services.location_resolver import (
    LocationResolver,
    NeedsDisambiguation,
    NotFound,
    ResolvedLocation,
    sanitize,
    select_option,
    title_case,
)
from wildlife_finder.services.outcomes import (
    ConversationOutcome,
    DisambiguationPrompt,
    NeedsAnimalLocation,
    NeedsLocation,
    ShowOrganizations,
    ShowSpecies,
    TurnFailed,
)
from wildlife_finder.services.response_formatter import ResponseFormatter
from wildlife_finder.services.session_store import SessionStore, build_session_store
from wildlife_finder.services.species_matcher import SpeciesMatcher, dedupe_species

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 2000
MAX_SESSION_ID_CHARS = 128


@dataclass
class TurnResult:
    response: str
    outcome: ConversationOutcome
    session: Session

    @property
    def stage(self) -> str:
        return self.session.stage

    @property
    def failed(self) -> bool:
        return isinstance(self.outcome, TurnFailed)


class ConversationEngine:
    """Drives one chat turn per call through the session stage machine.

    Every turn works on a copy of the stored session under that session's
    lock. The copy is persisted only when the turn completes; a collaborator
    failure discards it and leaves the stored session as it was.
    """

    def __init__(
        self,
        session_store: SessionStore,
        classifier: InputClassifier,
        resolver: LocationResolver,
        matcher: SpeciesMatcher,
        species_source: SpeciesSource,
        organization_finder: OrganizationFinder,
        formatter: Optional[ResponseFormatter] = None,
        candidate_limit: int = config.SPECIES_CANDIDATE_LIMIT,
        telemetry_enabled: bool = config.TURN_TELEMETRY_ENABLED,
        llm_available: bool = False,
    ) -> None:
        self.session_store = session_store
        self.classifier = classifier
        self.resolver = resolver
        self.matcher = matcher
        self.species_source = species_source
        self.organization_finder = organization_finder
        self.formatter = formatter or ResponseFormatter()
        self.candidate_limit = candidate_limit
        self.telemetry_enabled = telemetry_enabled
        self.llm_available = llm_available

    def handle_message(self, message: Any, session_id: Any = "default") -> TurnResult:
        text = self._safe_text(message, max_len=MAX_MESSAGE_CHARS)
        if not text:
            raise ValueError("message is required")
        key = self._safe_text(session_id, default="default", max_len=MAX_SESSION_ID_CHARS)

        with self.session_store.lock(key):
            stored = self.session_store.get(key) or Session(id=key)
            working = stored.model_copy(deep=True)
            trace: Dict[str, Any] = {"stage_before": stored.stage}
            try:
                outcome = self._dispatch(working, text, trace)
            except CollaboratorError as exc:
                logger.exception("Turn failed for session %s (collaborator=%s)", key, exc.collaborator)
                outcome = TurnFailed(detail=exc.detail, collaborator=exc.collaborator)
                working = stored
                trace["collaborator"] = exc.collaborator
            self.session_store.set(key, working)

        response = self.formatter.render(outcome)
        self._emit_turn_telemetry(key, text, outcome, working, trace)
        return TurnResult(response=response, outcome=outcome, session=working)

    def reset(self, session_id: Any = "default") -> TurnResult:
        key = self._safe_text(session_id, default="default", max_len=MAX_SESSION_ID_CHARS)
        with self.session_store.lock(key):
            session = self.session_store.get(key) or Session(id=key)
            stage_before = session.stage
            session.reset()
            self.session_store.set(key, session)

        outcome = NeedsLocation(reason="restart")
        self._emit_turn_telemetry(key, "", outcome, session, {"stage_before": stage_before, "event": "reset"})
        return TurnResult(response=self.formatter.render(outcome), outcome=outcome, session=session)

    def close(self) -> None:
        """Release HTTP clients held by collaborators that own one."""
        for collaborator in (self.resolver.geocoder, self.species_source, self.organization_finder):
            close = getattr(collaborator, "close", None)
            if callable(close):
                close()

    def _dispatch(self, session: Session, message: str, trace: Dict[str, Any]) -> ConversationOutcome:
        if session.stage != "initial" and gazetteer.RESTART_PATTERN.match(message):
            session.reset()
            trace["event"] = "restart"
            return NeedsLocation(reason="restart")

        handlers: Dict[str, Callable[[Session, str, Dict[str, Any]], ConversationOutcome]] = {
            "initial": self._on_initial,
            "awaiting-location": self._on_awaiting_location,
            "disambiguation": self._on_disambiguation,
            "awaiting-animal": self._on_awaiting_animal,
            "awaiting-animal-location": self._on_awaiting_animal_location,
            "completed": self._on_completed,
        }
        return handlers[session.stage](session, message, trace)

    def _on_initial(self, session: Session, message: str, trace: Dict[str, Any]) -> ConversationOutcome:
        verdict, rule = self.classifier.explain(message)
        trace["classification"] = verdict
        trace["rule"] = rule

        if verdict == "ANIMAL":
            animal = Species(common_name=title_case(sanitize(message)))
            session.mode = "animal-first"
            session.pending_animal = animal
            session.stage = "awaiting-animal-location"
            return NeedsAnimalLocation(animal=animal)

        session.mode = "location-first"
        session.stage = "awaiting-location"
        if verdict == "AMBIGUOUS":
            return NeedsLocation(reason="welcome")
        return self._on_awaiting_location(session, message, trace)

    def _on_awaiting_location(self, session: Session, message: str, trace: Dict[str, Any]) -> ConversationOutcome:
        result = self._call("geocoder", self.resolver.resolve, message)
        trace["resolution"] = type(result).__name__
        if isinstance(result, NotFound):
            return NeedsLocation(reason="not-found", detail=result.message, query=result.query)
        if isinstance(result, NeedsDisambiguation):
            return self._enter_disambiguation(session, result)
        return self._enter_species_selection(session, result.location)

    def _on_disambiguation(self, session: Session, message: str, trace: Dict[str, Any]) -> ConversationOutcome:
        options = session.disambiguation_options
        option = select_option(message, options)
        if option is None:
            trace["resolution"] = "unresolved_option"
            return DisambiguationPrompt(options=options, unresolved=True)

        result = self._call("geocoder", self.resolver.resolve_option, option)
        trace["resolution"] = type(result).__name__
        if not isinstance(result, ResolvedLocation):
            detail = result.message if isinstance(result, NotFound) else ""
            return DisambiguationPrompt(options=options, detail=detail)

        if session.mode == "animal-first" and session.pending_animal is not None:
            return self._complete_with_location(session, session.pending_animal, result.location)
        return self._enter_species_selection(session, result.location)

    def _on_awaiting_animal(self, session: Session, message: str, trace: Dict[str, Any]) -> ConversationOutcome:
        match = self.matcher.match(message, session.species_candidates)
        trace["match_status"] = match.status
        trace["strategy"] = match.strategy

        if match.status == "non-animal-input":
            return ShowSpecies(location=session.location, species=session.species_candidates, reason="non-animal-input")
        if match.matched and match.species is not None:
            return self._complete_with_location(session, match.species, session.location)

        if self.classifier.looks_like_location(message):
            trace["event"] = "relocate"
            session.reset()
            return self._on_awaiting_location(session, message, trace)
        return ShowSpecies(location=session.location, species=session.species_candidates, reason="no-match")

    def _on_awaiting_animal_location(
        self, session: Session, message: str, trace: Dict[str, Any]
    ) -> ConversationOutcome:
        animal = session.pending_animal or Species(common_name="this animal")

        if gazetteer.WORLDWIDE_PATTERN.search(message):
            trace["event"] = "worldwide"
            return self._complete_globally(session, animal)

        if self.classifier.looks_like_animal(message):
            trace["event"] = "refined_animal"
            return self._complete_globally(session, Species(common_name=title_case(sanitize(message))))

        result = self._call("geocoder", self.resolver.resolve, message)
        trace["resolution"] = type(result).__name__
        if isinstance(result, ResolvedLocation):
            return self._complete_with_location(session, animal, result.location)
        if isinstance(result, NeedsDisambiguation):
            return self._enter_disambiguation(session, result)
        return NeedsAnimalLocation(animal=animal, retry=True, detail=result.message)

    def _on_completed(self, session: Session, message: str, trace: Dict[str, Any]) -> ConversationOutcome:
        session.reset()
        trace["event"] = "restart"
        return NeedsLocation(reason="restart")

    def _enter_disambiguation(self, session: Session, result: NeedsDisambiguation) -> ConversationOutcome:
        session.disambiguation_options = list(result.options)
        session.stage = "disambiguation"
        return DisambiguationPrompt(options=session.disambiguation_options, query=result.query)

    def _enter_species_selection(self, session: Session, location: Location) -> ConversationOutcome:
        species = self._call("species_source", self.species_source.fetch_species_for_location, location)
        candidates = dedupe_species(list(species or []))[: self.candidate_limit]
        if not candidates:
            session.reset()
            return NeedsLocation(reason="no-species", query=location.display_name)

        session.location = location
        session.species_candidates = candidates
        session.disambiguation_options = []
        session.stage = "awaiting-animal"
        return ShowSpecies(location=location, species=candidates)

    def _complete_with_location(self, session: Session, animal: Species, location: Optional[Location]) -> ConversationOutcome:
        scope = location.display_name if location is not None else GLOBAL_SCOPE
        organizations = self._call(
            "organization_finder", self.organization_finder.fetch_organizations, animal.common_name, scope
        )
        self._finish(session, animal, location)
        return ShowOrganizations(
            animal=animal,
            scope=scope,
            organizations=list(organizations or []),
            global_scope=location is None,
        )

    def _complete_globally(self, session: Session, animal: Species) -> ConversationOutcome:
        return self._complete_with_location(session, animal, None)

    def _finish(self, session: Session, animal: Species, location: Optional[Location]) -> None:
        session.selected_animal = animal
        session.location = location
        session.species_candidates = []
        session.disambiguation_options = []
        session.pending_animal = None
        session.stage = "completed"

    def _call(self, collaborator: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except CollaboratorError:
            raise
        except Exception as exc:
            raise CollaboratorError(collaborator, str(exc) or type(exc).__name__) from exc

    def _emit_turn_telemetry(
        self,
        session_id: str,
        message: str,
        outcome: ConversationOutcome,
        session: Session,
        trace: Dict[str, Any],
    ) -> None:
        if not self.telemetry_enabled:
            return
        payload = {
            "session_id": session_id,
            "message_length": len(message),
            "stage_before": trace.get("stage_before"),
            "stage_after": session.stage,
            "outcome": type(outcome).__name__,
            "mode": session.mode,
            "classification": trace.get("classification"),
            "rule": trace.get("rule"),
            "resolution": trace.get("resolution"),
            "match_status": trace.get("match_status"),
            "strategy": trace.get("strategy"),
            "event": trace.get("event"),
            "collaborator": trace.get("collaborator"),
        }
        logger.info("turn_telemetry=%s", json.dumps(payload, sort_keys=True))

    def _safe_text(self, value: Any, default: str = "", max_len: int = 512) -> str:
        if value is None:
            return default
        text = str(value).strip()
        if not text:
            return default
        if len(text) > max_len:
            return text[:max_len]
        return text


def build_engine() -> ConversationEngine:
    llm = LLMClient()
    return ConversationEngine(
        session_store=build_session_store(config.SESSION_DB_PATH),
        classifier=InputClassifier(semantic_classifier=LLMInputTypeClassifier(llm)),
        resolver=LocationResolver(geocoder=NominatimGeocoder(), ambiguity_checker=LLMAmbiguityChecker(llm)),
        matcher=SpeciesMatcher(),
        species_source=INaturalistSpeciesSource(),
        organization_finder=LLMOrganizationFinder(llm),
        llm_available=llm.available,
    )
