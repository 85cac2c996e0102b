"""
Rule-based stand-in for the generation backend.

Rationale:
- Used when the backend is unreachable so a request still gets an answer.
- Fast and deterministic: ordered substring rules, first match wins.
- Templates use the same **Label**: value sections as the real prompt, so the
  parser treats both sources the same way.
"""

import logging
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)

TEMPLATES = {
    "social_follow": """**Purpose**: Social following functionality - allows users to follow/unfollow other users
**Audience**: Social media and creator platform developers
**Data Sensitivity**: medium — involves user relationships and social connections
**Authentication Friction**: high — requires authenticated user to perform social actions
**Business Model**: SaaS — typical social platform feature
**Example Use Case**: Instagram-like app where users can follow content creators""",
    "user_profile": """**Purpose**: User profile management - retrieves or updates user profile information
**Audience**: Frontend developers building user account features
**Data Sensitivity**: medium — contains personal user information
**Authentication Friction**: medium — user must be authenticated to access profiles
**Business Model**: SaaS — core user management functionality
**Example Use Case**: Profile pages in social apps, account settings in web applications""",
    "authentication": """**Purpose**: User authentication and authorization services
**Audience**: Application developers implementing login systems
**Data Sensitivity**: high — handles sensitive authentication credentials
**Authentication Friction**: low — this IS the authentication endpoint
**Business Model**: Internal — core authentication infrastructure
**Example Use Case**: Login flows for web and mobile applications""",
    "ecommerce": """**Purpose**: E-commerce product and review management
**Audience**: E-commerce platform developers and retailers
**Data Sensitivity**: low — public product information and reviews
**Authentication Friction**: low — product data typically public, reviews may require auth
**Business Model**: SaaS — e-commerce platform service
**Example Use Case**: Online stores, marketplace platforms, review systems""",
}

GENERIC_TEMPLATE = """**Purpose**: API functionality for {input}
**Audience**: Application developers and system integrators
**Data Sensitivity**: medium — standard API data handling
**Authentication Friction**: medium — likely requires authentication
**Business Model**: SaaS — business API service
**Example Use Case**: Integration with business applications and workflows"""

# Order matters: /users + follow must be checked before plain /users.
ENDPOINT_RULES: List[Tuple[str, Callable[[str], bool]]] = [
    ("social_follow", lambda s: "/users" in s and "follow" in s),
    ("user_profile", lambda s: "/users" in s),
    ("authentication", lambda s: "/auth" in s or "/login" in s),
    ("ecommerce", lambda s: "/products" in s or "/reviews" in s),
]


def select_template(input_text: str, input_type: str) -> str:
    """Name of the template the mock would use for this input."""
    if input_type == "endpoint":
        for name, matches in ENDPOINT_RULES:
            if matches(input_text):
                return name
    return "generic"


def mock_analysis(input_text: str, input_type: str) -> str:
    """
    Return a canned six-section analysis for `input_text`.

    Never raises; the same (input, type) always yields the same text.
    """
    name = select_template(input_text, input_type)
    logger.info(f"Generating mock analysis with template: {name}")
    if name == "generic":
        return GENERIC_TEMPLATE.format(input=input_text)
    return TEMPLATES[name]
