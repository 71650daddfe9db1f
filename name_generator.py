"""Default session names, e.g. "Titan Forge" or "Dawn Trail"."""

import random

ADJECTIVES = [
    "Steel", "Dawn", "Midnight", "Savage", "Crushing",
    "Ultimate", "Hyper", "Elite", "Rogue", "Titan",
    "Shadow", "Golden", "Fierce", "Primal", "Infinite",
]

NOUNS = [
    "Crusher", "Sprint", "Engine", "Session", "Grind",
    "Forge", "Burn", "Quest", "Protocol", "Surge",
    "Legacy", "Impact", "Storm", "Zenith", "Warrior",
]

RUN_NOUNS = ["Sprint", "Trail", "Dash", "Pace", "Circuit"]


def suggest_name(activity_kind, rng=random):
    """Random "{adjective} {noun}" for an activity kind. Not unique."""
    adjective = rng.choice(ADJECTIVES)
    noun = rng.choice(RUN_NOUNS if activity_kind == "Run" else NOUNS)
    return f"{adjective} {noun}"
