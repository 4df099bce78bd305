from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Stage = Literal[
    "initial",
    "awaiting-location",
    "disambiguation",
    "awaiting-animal",
    "awaiting-animal-location",
    "completed",
]

ConversationMode = Literal["location-first", "animal-first"]

InputKind = Literal["LOCATION", "ANIMAL", "AMBIGUOUS"]


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float
    display_name: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class DisambiguationOption(BaseModel):
    display_name: str
    search_query: str
    description: str = ""
    country: str = ""
    region: Optional[str] = None


class Species(BaseModel):
    common_name: str
    scientific_name: str = ""
    conservation_status: str = "Unknown"


class Organization(BaseModel):
    name: str
    website: Optional[str] = None
    description: str = ""


class Session(BaseModel):
    id: str
    stage: Stage = "initial"
    location: Optional[Location] = None
    species_candidates: List[Species] = Field(default_factory=list)
    disambiguation_options: List[DisambiguationOption] = Field(default_factory=list)
    selected_animal: Optional[Species] = None
    pending_animal: Optional[Species] = None
    mode: Optional[ConversationMode] = None

    def reset(self) -> None:
        """Back to awaiting-location with every per-conversation field cleared."""
        self.stage = "awaiting-location"
        self.location = None
        self.species_candidates = []
        self.disambiguation_options = []
        self.selected_animal = None
        self.pending_animal = None
        self.mode = "location-first"


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    session_id: str = Field(default="default", alias="sessionId")


class ResetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(default="default", alias="sessionId")


class ChatResponse(BaseModel):
    response: str
    stage: Stage
    session_id: str


class ErrorResponse(BaseModel):
    error: str
