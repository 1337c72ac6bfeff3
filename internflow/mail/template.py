"""Mail body templating, subject school switching, recipient normalisation."""

import re

from internflow.core.config import CandidateProfile
from internflow.core.schemas import JobRecord, ProfileType

_PLACEHOLDER = re.compile(r"{{\s*(\w+)\s*}}")


def master_info(candidate: CandidateProfile) -> str:
    """Sentence describing the master's programme, empty when there is none."""
    if not candidate.master:
        return ""
    major = f" ({candidate.master_major})" if candidate.master_major else ""
    return f"I am pursuing a master's degree at {candidate.master}{major}. "


def template_values(record: JobRecord, candidate: CandidateProfile) -> dict[str, str]:
    return {
        "opening_line": record.opening_line,
        "job_source_line": record.job_source_line,
        "praise_line": record.praise_line,
        "company": record.company,
        "name": candidate.name,
        "undergrad": candidate.undergrad,
        "undergrad_major": candidate.undergrad_major,
        "availability": candidate.availability,
        "frequency": candidate.frequency,
        "arrival": candidate.arrival,
        "current_grade": candidate.current_grade,
        "master_info": master_info(candidate),
    }


def render_body(template: str, record: JobRecord, candidate: CandidateProfile) -> str:
    """Fill ``{{name}}``-style placeholders. Unknown placeholders are left as is."""
    values = template_values(record, candidate)

    def _sub(match: re.Match[str]) -> str:
        return values.get(match.group(1), match.group(0))

    return _PLACEHOLDER.sub(_sub, template)


def school_for(profile: ProfileType, candidate: CandidateProfile) -> str:
    """School string a subject carries under the given profile."""
    if profile is ProfileType.BASE:
        return candidate.base_school
    if profile is ProfileType.MASTER:
        return candidate.full_school
    msg = f"Unhandled profile type: {profile!r}"
    raise ValueError(msg)


def switch_subject(
    subject: str,
    current: ProfileType,
    new: ProfileType,
    candidate: CandidateProfile,
) -> str:
    """Rewrite the school segment of a subject when the profile changes.

    Only the first occurrence is replaced; subjects without the old school
    are returned unchanged.
    """
    if current is new:
        return subject
    old_school = school_for(current, candidate)
    new_school = school_for(new, candidate)
    if new is ProfileType.MASTER and candidate.full_school in subject:
        return subject
    if old_school and old_school in subject:
        return subject.replace(old_school, new_school, 1)
    return subject


def normalize_recipients(raw: str) -> str:
    """Turn a loosely separated address list into ``a@x.com,b@y.com``.

    Full-width commas and semicolons count as separators.
    """
    if not raw:
        return ""
    unified = raw.replace("，", ",").replace(";", ",")
    parts = [p.strip() for p in unified.split(",")]
    return ",".join(p for p in parts if p)
