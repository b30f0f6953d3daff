"""
Renders a member profile into the text that gets embedded.
"""
import re

SKILL_DELIMITERS = re.compile(r'[,;\n]')

PROFILE_CLOSING_LINE = 'Looking for candidates with these capabilities:'


def normalize_skills(value) -> list[str]:
    """
    Accept skills as a list or a delimited string and return a clean list.
    Order is preserved; blanks are dropped.
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts = SKILL_DELIMITERS.split(value)
    else:
        parts = [str(v) for v in value if v is not None]
    return [p.strip() for p in parts if p.strip()]


def build_profile_text(profile) -> str | None:
    """
    Labeled multi-line text for a profile, or None when there is nothing to embed
    (no name, no skills, no description). Callers must not encode a None.
    """
    name = (profile.name or '').strip()
    description = (profile.description or '').strip()
    skills = ', '.join(normalize_skills(profile.skills))

    if not (name or skills or description):
        return None

    return '\n'.join([
        f"Professional: {name or 'Unnamed'}",
        f"Skills: {skills}",
        f"Description: {description or 'No description provided'}",
        PROFILE_CLOSING_LINE,
    ])
