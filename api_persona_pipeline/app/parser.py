"""
Persona extraction from free-form model output.

Flow:
1. Pull each **Label**: value section out of the text with tolerant regexes
   (case-insensitive, value runs to the next ** marker or end of text).
2. Validate the enumerated fields against their allow-lists; anything else
   keeps the default.
3. If no purpose was found, fill the persona from keywords in the original
   input.
4. If the text is empty or anything above blows up, return a whole-record
   fallback built from the input alone.

parse_persona never raises.
"""

import logging
import re
from typing import Dict, Optional

from .schemas import Persona

logger = logging.getLogger(__name__)

LEVELS = ("low", "medium", "high")
BUSINESS_MODELS = ("Internal", "SaaS", "Open API", "Monetized")

DEFAULT_AUDIENCE = "Application developers"


def _section_pattern(label: str) -> re.Pattern:
    return re.compile(r"\*\*" + re.escape(label) + r"\*\*:\s*(.+?)(?=\*\*|$)", re.IGNORECASE | re.DOTALL)


def _token_pattern(label: str) -> re.Pattern:
    return re.compile(r"\*\*" + re.escape(label) + r"\*\*:\s*(\w+)", re.IGNORECASE)


SECTION_PATTERNS = {
    "purpose": _section_pattern("Purpose"),
    "audience": _section_pattern("Audience"),
    "business_model": _section_pattern("Business Model"),
    "example_use_case": _section_pattern("Example Use Case"),
}

TOKEN_PATTERNS = {
    "data_sensitivity": _token_pattern("Data Sensitivity"),
    "authentication_friction": _token_pattern("Authentication Friction"),
}


def _first_line(text: str) -> str:
    return text.strip().split("\n", 1)[0].strip()


def _extract_section(text: str, field: str) -> Optional[str]:
    match = SECTION_PATTERNS[field].search(text)
    if not match:
        return None
    return _first_line(match.group(1))


def _extract_level(text: str, field: str) -> Optional[str]:
    match = TOKEN_PATTERNS[field].search(text)
    if not match:
        return None
    value = match.group(1).lower()
    return value if value in LEVELS else None


def _match_business_model(text: str) -> Optional[str]:
    lowered = text.lower()
    for model in BUSINESS_MODELS:
        if model.lower() in lowered:
            return model
    return None


def _use_case_for(original_input: str) -> str:
    domain = "user management" if "user" in original_input else "business"
    return f"Integration with {domain} systems"


def _fill_from_input(fields: Dict[str, str], original_input: str) -> None:
    """Keyword heuristics for when the text gave us no purpose."""
    if "user" in original_input:
        fields["purpose"] = "User management and data operations"
        fields["audience"] = "Frontend and mobile developers"
    elif "auth" in original_input:
        fields["purpose"] = "Authentication and authorization services"
        fields["audience"] = DEFAULT_AUDIENCE
        fields["data_sensitivity"] = "high"
    else:
        tokens = original_input.split()
        subject = tokens[1] if len(tokens) > 1 else original_input
        fields["purpose"] = f"API functionality for {subject}"
        fields["audience"] = DEFAULT_AUDIENCE


def fallback_persona(original_input: str, input_type: str) -> Persona:
    """Whole-record fallback used when the text cannot be parsed at all."""
    return Persona(
        purpose=f"Analysis of {input_type}: {original_input}",
        audience=DEFAULT_AUDIENCE,
        example_use_case=_use_case_for(original_input),
    )


def _parse_fields(raw_text: str, original_input: str) -> Dict[str, str]:
    fields = {
        "purpose": "",
        "audience": "",
        "data_sensitivity": "medium",
        "authentication_friction": "medium",
        "business_model": "SaaS",
        "example_use_case": "",
    }

    for field in ("purpose", "audience", "example_use_case"):
        value = _extract_section(raw_text, field)
        if value:
            fields[field] = value

    for field in ("data_sensitivity", "authentication_friction"):
        value = _extract_level(raw_text, field)
        if value:
            fields[field] = value

    business = _extract_section(raw_text, "business_model")
    if business:
        fields["business_model"] = _match_business_model(business) or fields["business_model"]

    if not fields["purpose"]:
        logger.info("No purpose in model output, filling persona from input keywords")
        _fill_from_input(fields, original_input)

    # purpose fallback does not cover these two
    if not fields["audience"]:
        fields["audience"] = DEFAULT_AUDIENCE
    if not fields["example_use_case"]:
        fields["example_use_case"] = _use_case_for(original_input)

    return fields


def parse_persona(raw_text: Optional[str], original_input: str, input_type: str) -> Persona:
    """
    Parse `raw_text` into a Persona.

    Args:
        raw_text: Free-form analysis from the backend or the mock
        original_input: The endpoint, OpenAPI URL or document the user submitted
        input_type: endpoint | openapi_url | openapi_spec

    Returns:
        A Persona with purpose, audience and example_use_case always non-empty
    """
    try:
        if not raw_text:
            raise ValueError("No response to parse")
        persona = Persona(**_parse_fields(raw_text, original_input))
        logger.debug(f"Persona parsed: {persona.model_dump()}")
        return persona
    except Exception as e:
        logger.error(f"Error parsing persona response: {e}")
        return fallback_persona(original_input, input_type)
