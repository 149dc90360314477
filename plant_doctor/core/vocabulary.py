"""
Label vocabularies for plant validation and label reconciliation.

General-purpose classifiers (ImageNet-style) emit free-text labels such as
"German shepherd, German shepherd dog" or "bell pepper". These tables decide
which of those labels count as plant evidence and which reveal a non-plant
subject.
"""

import re
from functools import lru_cache
from typing import Iterable, Optional

# Pepper-family terms; all are mapped onto the single bell pepper entry
PEPPER_TERMS = ("pepper", "capsicum", "chili")

# Symptoms the bell pepper bacterial spot entry covers
BACTERIAL_TERMS = ("bacterial", "spot", "blight", "lesion")

# Isolated non-plant terms (insects, small animals, inanimate objects)
NON_PLANT_TERMS = (
    "beetle",
    "insect",
    "bug",
    "arthropod",
    "animal",
    "mammal",
    "rodent",
    "acorn",
    "frog",
    "snake",
    "bird",
    "pot",
    "flowerpot",
    "person",
    "human",
    # ImageNet classes whose names start with a plant word
    "leafhopper",
    "cornet",
)

# Non-plant categories that should be rejected
NON_PLANT_EXCLUSION_CATEGORIES = (
    # People
    "person",
    "human",
    "man",
    "woman",
    "child",
    "boy",
    "girl",
    # Animals
    "animal",
    "dog",
    "puppy",
    "cat",
    "kitten",
    "bird",
    "horse",
    "cow",
    "sheep",
    "goat",
    "pig",
    "elephant",
    "bear",
    "zebra",
    "giraffe",
    # Common ImageNet dog and cat breeds
    "shepherd",
    "retriever",
    "terrier",
    "spaniel",
    "poodle",
    "bulldog",
    "beagle",
    "hound",
    "collie",
    "husky",
    "chihuahua",
    "dachshund",
    "labrador",
    "rottweiler",
    "tabby",
    "siamese",
    "persian cat",
    # Buildings and vehicles
    "building",
    "vehicle",
    "car",
    "truck",
    "boat",
    "airplane",
    # Furniture
    "furniture",
    "table",
    "chair",
    "bed",
    "couch",
    # Electronics
    "electronic",
    "computer",
    "laptop",
    "phone",
    "monitor",
    "television",
    # Other objects
    "food",
    "drink",
    "clothing",
    "accessory",
    # Containers
    "pot",
    "flowerpot",
    "vase",
    "bucket",
    "bottle",
)

# Keywords that mark a label as plant related
PLANT_KEYWORDS = (
    "leaf",
    "leaves",
    "plant",
    "tree",
    "flower",
    "fruit",
    "vegetable",
    "apple",
    "tomato",
    "grape",
    "strawberry",
    "pomegranate",
    "potato",
    "pepper",
    "capsicum",
    "chili",
    "corn",
    "bean",
    "cucumber",
    "eggplant",
    "lettuce",
    "peach",
    "orange",
    "lemon",
    "cherry",
    "blueberry",
    "squash",
)

# Plant-related categories
PLANT_CATEGORIES = (
    # General plant terms
    "plant",
    "flower",
    "tree",
    "leaf",
    "vegetable",
    "fruit",
    "grass",
    "herb",
    "bush",
    "forest",
    "garden",
    "crop",
    "seedling",
    "sprout",
    "blossom",
    "branch",
    "stem",
    "root",
    "bud",
    "petal",
    "flora",
    "foliage",
    "greenery",
    "vegetation",
    "botany",
    "horticulture",
    "agricultural",
    "vine",
    "shrub",
    "succulent",
    # Tree types
    "pine",
    "oak",
    "maple",
    "birch",
    "willow",
    "cedar",
    "cypress",
    "elm",
    "fir",
    "palm",
    "spruce",
    "aspen",
    "beech",
    "ash",
    "hickory",
    "poplar",
    "redwood",
    "sequoia",
    "chestnut",
    "walnut",
    "olive",
    "mahogany",
    "juniper",
    "eucalyptus",
    "sycamore",
    "baobab",
    "yew",
    "hemlock",
    "larch",
    "bamboo",
    # Flowers
    "rose",
    "tulip",
    "daisy",
    "sunflower",
    "orchid",
    "lily",
    "daffodil",
    "iris",
    "peony",
    "chrysanthemum",
    "carnation",
    "pansy",
    "violet",
    "dahlia",
    "marigold",
    "poppy",
    "hibiscus",
    "geranium",
    "magnolia",
    "lavender",
    "jasmine",
    "primrose",
    "begonia",
    "gardenia",
    "azalea",
    "hydrangea",
    "zinnia",
    "snapdragon",
    "aster",
    # Fruits
    "berry",
    "apple",
    "orange",
    "banana",
    "strawberry",
    "blueberry",
    "raspberry",
    "blackberry",
    "grape",
    "watermelon",
    "pineapple",
    "mango",
    "peach",
    "pear",
    "plum",
    "cherry",
    "kiwi",
    "lemon",
    "lime",
    "avocado",
    "fig",
    "pomegranate",
    "apricot",
    "papaya",
    "guava",
    "coconut",
    "cranberry",
    "grapefruit",
    "lychee",
    "passion fruit",
    # Vegetables
    "lettuce",
    "cabbage",
    "broccoli",
    "cauliflower",
    "carrot",
    "potato",
    "tomato",
    "cucumber",
    "eggplant",
    "onion",
    "garlic",
    "radish",
    "spinach",
    "kale",
    "celery",
    "bell pepper",
    "pea",
    "bean",
    "corn",
    "squash",
    "zucchini",
    "pumpkin",
    "asparagus",
    "sweet potato",
    "artichoke",
    "beet",
    "turnip",
    "brussels sprout",
    "leek",
    # Herbs and spices
    "basil",
    "oregano",
    "thyme",
    "rosemary",
    "mint",
    "sage",
    "cilantro",
    "parsley",
    "dill",
    "chive",
    "coriander",
    "tarragon",
    "marjoram",
    "fennel",
    "turmeric",
    "ginger",
    "cinnamon",
    "cumin",
    "cardamom",
    "saffron",
    "vanilla",
    "peppermint",
    # Cacti and succulents
    "cactus",
    "aloe",
    "agave",
    "jade plant",
    "echeveria",
    "haworthia",
    "sedum",
    "sempervivum",
    "euphorbia",
    "kalanchoe",
    "aeonium",
    "opuntia",
    "prickly pear",
    "barrel cactus",
    "saguaro",
    "christmas cactus",
    "snake plant",
    "zebra plant",
    # Ferns and mosses
    "fern",
    "moss",
    "algae",
    "lichen",
    "liverwort",
    "hornwort",
    "maidenhair fern",
    "staghorn fern",
    "bracken",
    "ostrich fern",
    "lady fern",
    "sphagnum",
    "peat moss",
    # Grains and cereals
    "wheat",
    "rice",
    "barley",
    "oat",
    "rye",
    "millet",
    "sorghum",
    "quinoa",
    "buckwheat",
    "amaranth",
    "spelt",
    "maize",
    "ear",
    "cereal",
    # Legumes
    "lentil",
    "chickpea",
    "soybean",
    "peanut",
    "alfalfa",
    "clover",
    "lupin",
    "vetch",
    "fava bean",
    "lima bean",
    "green bean",
    "kidney bean",
    # Ornamental plants
    "philodendron",
    "monstera",
    "pothos",
    "fiddle leaf fig",
    "peace lily",
    "ficus",
    "spider plant",
    "rubber plant",
    "boston fern",
    "dieffenbachia",
    "anthurium",
    "schefflera",
    "areca palm",
    "dracaena",
    "calathea",
    "zz plant",
    "prayer plant",
    "croton",
    "ivy",
    "ponytail palm",
    "african violet",
    # Plant parts
    "stamen",
    "pistil",
    "pollen",
    "nectar",
    "sepal",
    "anther",
    "pedicel",
    "peduncle",
    "inflorescence",
    "rhizome",
    "tuber",
    "bulb",
    "corm",
    "tendril",
    "thorn",
    "stolon",
    "frond",
    # Plant families
    "rosaceae",
    "fabaceae",
    "asteraceae",
    "poaceae",
    "orchidaceae",
    "brassicaceae",
    "lamiaceae",
    "solanaceae",
    "apiaceae",
    "cucurbitaceae",
    "rutaceae",
    "malvaceae",
    "pinaceae",
    "arecaceae",
    "lauraceae",
    "euphorbiaceae",
    "araceae",
    "cactaceae",
    # Aquatic plants
    "seaweed",
    "water lily",
    "lotus",
    "duckweed",
    "water hyacinth",
    "cattail",
    "reed",
    "bulrush",
    "mangrove",
    "kelp",
    "pondweed",
    "water fern",
    "eelgrass",
    "hydrilla",
    "water lettuce",
    "bladderwort",
)

# Trailing descriptors stripped when extracting a plant type
PLANT_TYPE_SUFFIXES = (" leaf", " plant", " tree", " flower", " fruit")

# Plant words that start compounds ("cornfield", "grapevine") and that end
# them ("houseplant", "wildflower"). Other terms only match whole words, as
# "aster" must not match "toaster".
COMPOUND_HEADS = ("corn", "grape", "pine", "leaf", "tree", "flower", "bean", "rose")
COMPOUND_TAILS = ("plant", "flower", "berry", "fruit", "vine", "grass", "wheat", "apple")


@lru_cache(maxsize=None)
def _term_pattern(term: str) -> re.Pattern:
    # Letters only on either side, so "pot" does not hit "potato" while
    # "Tomato___Late_blight" still contains "tomato"
    return re.compile(rf"(?<![a-z]){re.escape(term)}(?:s|es)?(?![a-z])")


def find_term(text: str, terms: Iterable[str]) -> Optional[str]:
    """Return the first term occurring in text as a whole word, or None."""
    lowered = text.lower()
    for term in terms:
        if _term_pattern(term).search(lowered):
            return term
    return None


def contains_term(text: str, terms: Iterable[str]) -> bool:
    return find_term(text, terms) is not None


@lru_cache(maxsize=None)
def _plant_term_pattern(term: str) -> re.Pattern:
    if term.endswith("y"):
        # "cherry" -> "cherries"
        inflected = re.escape(term[:-1]) + "(?:y|ies)"
    else:
        # "tomatoes", "leafy"
        inflected = re.escape(term) + "(?:s|es|y)?"

    left = "" if term in COMPOUND_TAILS else "(?<![a-z])"
    pattern = rf"{left}{inflected}(?![a-z])"
    if term in COMPOUND_HEADS:
        pattern += rf"|(?<![a-z]){re.escape(term)}"
    return re.compile(pattern)


def contains_plant_term(text: str, terms: Iterable[str]) -> bool:
    """
    True if text mentions one of the plant terms.

    Plant terms also match inflected and compound forms ("strawberries",
    "houseplant", "grapevine"), unlike find_term.
    """
    lowered = text.lower()
    return any(_plant_term_pattern(term).search(lowered) for term in terms)


def is_pepper_type(label: str) -> bool:
    """True if the label refers to any pepper type (substring match)."""
    lowered = label.lower()
    return any(term in lowered for term in PEPPER_TERMS)


def has_bacterial_disease(label: str) -> bool:
    """True if the label mentions a symptom of bacterial disease."""
    lowered = label.lower()
    return any(term in lowered for term in BACTERIAL_TERMS)
