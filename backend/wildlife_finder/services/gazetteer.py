import re
from typing import Dict, List, Pattern, Tuple

COUNTRIES = {
    "united states", "usa", "canada", "mexico", "united kingdom", "uk",
    "australia", "brazil", "germany", "france", "spain", "italy", "japan",
    "china", "india", "nepal", "bangladesh", "pakistan", "afghanistan",
    "thailand", "vietnam", "cambodia", "laos", "myanmar", "malaysia",
    "singapore", "indonesia", "philippines", "south korea", "north korea",
    "mongolia", "russia", "turkey", "egypt", "nigeria", "kenya", "ethiopia",
    "ghana", "morocco", "algeria", "tunisia", "israel", "saudi arabia",
    "uae", "iran", "iraq", "south africa", "argentina", "chile", "colombia",
    "peru", "venezuela", "ecuador", "bolivia", "paraguay", "uruguay",
    "netherlands", "belgium", "switzerland", "austria", "poland", "czech republic",
    "hungary", "romania", "bulgaria", "croatia", "serbia", "greece", "sweden",
    "norway", "denmark", "finland", "new zealand", "ireland", "portugal",
    "tanzania", "uganda", "madagascar", "costa rica",
}

US_STATES = {
    "alabama", "alaska", "arizona", "arkansas", "california", "colorado",
    "connecticut", "delaware", "florida", "georgia", "hawaii", "idaho",
    "illinois", "indiana", "iowa", "kansas", "kentucky", "louisiana",
    "maine", "maryland", "massachusetts", "michigan", "minnesota",
    "mississippi", "missouri", "montana", "nebraska", "nevada",
    "new hampshire", "new jersey", "new mexico", "new york", "north carolina",
    "north dakota", "ohio", "oklahoma", "oregon", "pennsylvania",
    "rhode island", "south carolina", "south dakota", "tennessee",
    "texas", "utah", "vermont", "virginia", "washington", "west virginia",
    "wisconsin", "wyoming",
}

CANADIAN_PROVINCES = {
    "alberta", "british columbia", "manitoba", "new brunswick",
    "newfoundland and labrador", "northwest territories", "nova scotia",
    "nunavut", "ontario", "prince edward island", "quebec", "saskatchewan",
    "yukon", "yukon territory",
}

ANIMAL_NAMES = {
    "eagle", "bear", "wolf", "deer", "fox", "owl", "hawk", "salmon",
    "turtle", "tortoise", "frog", "toad", "bat", "snake", "lizard", "butterfly",
    "crane", "duck", "rabbit", "squirrel", "mouse", "rat", "cat", "lynx", "otter",
    "seal", "whale", "dolphin", "bird", "mammal", "reptile", "amphibian",
    "fish", "skunk", "raccoon", "beaver", "chipmunk", "vole", "shrew",
    "mole", "weasel", "marten", "fisher", "badger", "porcupine", "woodchuck",
    "muskrat", "opossum", "moose", "elk", "caribou", "bison", "sheep",
    "goat", "pika", "hare", "bobcat", "cougar", "coyote", "wolverine",
    "walrus", "manatee", "dugong", "panther", "ferret", "condor", "falcon",
    "tiger", "elephant", "rhino", "gorilla", "leopard", "jaguar", "panda",
    "penguin", "shark", "pelican", "heron", "salamander", "newt",
}

# Generic words that never count as an animal on their own.
EXCLUDED_ANIMAL_WORDS = {
    "animal", "animals", "wildlife", "species", "bird", "birds", "fish",
    "mammal", "mammals", "reptile", "reptiles", "amphibian", "amphibians",
}

DESCRIPTIVE_PREFIXES = {
    "striped", "spotted", "common", "american", "european", "eastern",
    "western", "northern", "southern", "red", "black", "white", "brown",
    "gray", "grey", "blue", "green", "yellow", "great", "little", "small",
    "large", "giant", "bald", "golden", "snowy", "desert", "mountain",
    "river", "sea", "polar", "arctic",
}

# Country names that geocode better in their formal form.
COUNTRY_CANONICAL_NAMES = {
    "nepal": "Federal Democratic Republic of Nepal",
    "india": "Republic of India",
    "bangladesh": "People's Republic of Bangladesh",
    "pakistan": "Islamic Republic of Pakistan",
    "thailand": "Kingdom of Thailand",
    "vietnam": "Socialist Republic of Vietnam",
    "cambodia": "Kingdom of Cambodia",
    "myanmar": "Republic of the Union of Myanmar",
    "laos": "Lao People's Democratic Republic",
}

AMBIGUOUS_PLACES: Dict[str, List[Dict[str, str]]] = {
    "paris": [
        {
            "display_name": "Paris, France",
            "search_query": "Paris, France",
            "description": "Capital city of France",
            "country": "France",
        },
        {
            "display_name": "Paris, Texas",
            "search_query": "Paris, Texas, USA",
            "description": "City in Texas, United States",
            "country": "United States",
            "region": "Texas",
        },
    ],
    "london": [
        {
            "display_name": "London, England",
            "search_query": "London, England, UK",
            "description": "Capital city of England and the UK",
            "country": "United Kingdom",
        },
        {
            "display_name": "London, Ontario",
            "search_query": "London, Ontario, Canada",
            "description": "City in Ontario, Canada",
            "country": "Canada",
            "region": "Ontario",
        },
    ],
    "portland": [
        {
            "display_name": "Portland, Oregon",
            "search_query": "Portland, Oregon, USA",
            "description": "City in Oregon, United States",
            "country": "United States",
            "region": "Oregon",
        },
        {
            "display_name": "Portland, Maine",
            "search_query": "Portland, Maine, USA",
            "description": "City in Maine, United States",
            "country": "United States",
            "region": "Maine",
        },
    ],
    "cambridge": [
        {
            "display_name": "Cambridge, England",
            "search_query": "Cambridge, England, UK",
            "description": "University city in England",
            "country": "United Kingdom",
        },
        {
            "display_name": "Cambridge, Massachusetts",
            "search_query": "Cambridge, Massachusetts, USA",
            "description": "City in Massachusetts, United States",
            "country": "United States",
            "region": "Massachusetts",
        },
    ],
    "springfield": [
        {
            "display_name": "Springfield, Illinois",
            "search_query": "Springfield, Illinois, USA",
            "description": "Capital city of Illinois",
            "country": "United States",
            "region": "Illinois",
        },
        {
            "display_name": "Springfield, Massachusetts",
            "search_query": "Springfield, Massachusetts, USA",
            "description": "City in Massachusetts, United States",
            "country": "United States",
            "region": "Massachusetts",
        },
        {
            "display_name": "Springfield, Missouri",
            "search_query": "Springfield, Missouri, USA",
            "description": "City in Missouri, United States",
            "country": "United States",
            "region": "Missouri",
        },
    ],
}

IUCN_STATUS_LABELS = {
    "CR": "Critically Endangered",
    "EN": "Endangered",
    "VU": "Vulnerable",
    "NT": "Near Threatened",
    "LC": "Least Concern",
    "DD": "Data Deficient",
    "EX": "Extinct",
    "EW": "Extinct in the Wild",
    "NE": "Not Evaluated",
}

# (common name, scientific name) used when the species API comes back empty.
FALLBACK_SPECIES: Dict[str, List[Tuple[str, str]]] = {
    "nevada": [
        ("Desert Tortoise", "Gopherus agassizii"),
        ("Southwestern Willow Flycatcher", "Empidonax traillii extimus"),
        ("Pahrump Poolfish", "Empetrichthys latos"),
        ("Devils Hole Pupfish", "Cyprinodon diabolis"),
        ("Relict Leopard Frog", "Lithobates onca"),
        ("Big Brown Bat", "Eptesicus fuscus"),
        ("Gila Monster", "Heloderma suspectum"),
        ("Burrowing Owl", "Athene cunicularia"),
        ("Desert Bighorn Sheep", "Ovis canadensis nelsoni"),
        ("Kit Fox", "Vulpes macrotis"),
    ],
    "colorado": [
        ("Black-footed Ferret", "Mustela nigripes"),
        ("Canada Lynx", "Lynx canadensis"),
        ("Greenback Cutthroat Trout", "Oncorhynchus clarkii stomias"),
        ("Preble's Meadow Jumping Mouse", "Zapus hudsonius preblei"),
        ("Piping Plover", "Charadrius melodus"),
        ("Boreal Toad", "Anaxyrus boreas boreas"),
        ("River Otter", "Lontra canadensis"),
        ("Peregrine Falcon", "Falco peregrinus"),
        ("Bighorn Sheep", "Ovis canadensis"),
        ("White-tailed Ptarmigan", "Lagopus leucura"),
    ],
    "default": [
        ("Bald Eagle", "Haliaeetus leucocephalus"),
        ("Gray Wolf", "Canis lupus"),
        ("Brown Bear", "Ursus arctos"),
        ("Whooping Crane", "Grus americana"),
        ("California Condor", "Gymnogyps californianus"),
        ("Green Sea Turtle", "Chelonia mydas"),
        ("Monarch Butterfly", "Danaus plexippus"),
        ("Polar Bear", "Ursus maritimus"),
        ("Mountain Lion", "Puma concolor"),
        ("American Black Bear", "Ursus americanus"),
    ],
}

NATIONAL_US_ORGANIZATIONS: List[Dict[str, str]] = [
    {
        "name": "National Wildlife Federation",
        "website": "https://www.nwf.org",
        "description": "Protecting wildlife for our children's future",
    },
    {
        "name": "The Nature Conservancy",
        "website": "https://www.nature.org",
        "description": "Protecting lands and waters on which all life depends",
    },
    {
        "name": "U.S. Fish and Wildlife Service",
        "website": "https://www.fws.gov",
        "description": "Federal agency for endangered species recovery and wildlife refuges",
    },
]

INTERNATIONAL_ORGANIZATIONS: List[Dict[str, str]] = [
    {
        "name": "World Wildlife Fund",
        "website": "https://www.worldwildlife.org",
        "description": "Conserving wildlife and wild places worldwide",
    },
    {
        "name": "International Union for Conservation of Nature",
        "website": "https://www.iucn.org",
        "description": "Global authority on nature conservation",
    },
    {
        "name": "Wildlife Conservation Society",
        "website": "https://www.wcs.org",
        "description": "Saving wildlife and wild places across the globe",
    },
]

US_SCOPE_MARKERS = ("united states", "usa", ", us")


def _compile(patterns: List[str]) -> List[Pattern[str]]:
    return [re.compile(pattern, re.IGNORECASE) for pattern in patterns]


_SHARED_FILLER = [
    r"^.{1,2}$",
    r"^[0-9]+$",
    r"^(hello|hi|hey|howdy|greetings|good morning|good afternoon|good evening)\b",
    r"^(yes|no|ok|okay|sure|maybe|thanks|thank you|please|welcome)\b",
    r"^(help|support|info|information|about|contact|assistance)\b",
    r"^(cool|nice|awesome|great|wow|amazing|interesting)[\s!.]*$",
    r"^(sorry|excuse me|pardon)\b",
]

FILLER_PATTERNS = _compile(_SHARED_FILLER)

NON_LOCATION_PATTERNS = _compile(
    _SHARED_FILLER
    + [
        r"^(what|who|when|how|why)\b",
        r"^(animal|animals|wildlife|species|bird|birds|fish|mammal|mammals|reptile|reptiles)\b",
    ]
)

NON_ANIMAL_PATTERNS = _compile(
    _SHARED_FILLER
    + [
        r"^(what|who|when|how|why|where)\b",
        r"^(location|place|city|state|country|address)\b",
        r"^(find|search|show|list|give|tell|get|display)\b",
        r"^(back|go back|return)\b",
    ]
)

RESTART_PATTERN = re.compile(r"^(start over|restart|reset|new search|begin again)[\s!.]*$", re.IGNORECASE)
WORLDWIDE_PATTERN = re.compile(r"\b(worldwide|world wide|global|globally|anywhere|everywhere|internationally)\b", re.IGNORECASE)


def matches_any(text: str, patterns: List[Pattern[str]]) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def is_known_region(name: str) -> bool:
    key = name.strip().lower()
    return key in COUNTRIES or key in US_STATES or key in CANADIAN_PROVINCES
