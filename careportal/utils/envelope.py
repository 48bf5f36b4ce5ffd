"""
Subject/body envelope stored in Message.content.

Wire format: "**Subject:** <subject>\\n\\n<body>". Content written before subjects
existed has no marker and decodes to the default subject with the whole content
as body. A subject containing a blank line cannot round-trip.
"""

from dataclasses import dataclass

SUBJECT_MARKER = "**Subject:**"
SEPARATOR = "\n\n"
NO_SUBJECT = "No subject"
PREVIEW_LENGTH = 100


@dataclass(frozen=True)
class Envelope:
    subject: str
    body: str

    @property
    def preview(self) -> str:
        return self.body[:PREVIEW_LENGTH]


def encode(subject: str, body: str) -> str:
    return f"{SUBJECT_MARKER} {subject}{SEPARATOR}{body}"


def decode(content: str) -> Envelope:
    if not content or not content.startswith(SUBJECT_MARKER):
        return Envelope(subject=NO_SUBJECT, body=content or "")

    after_marker = content[len(SUBJECT_MARKER):].lstrip(" ")
    subject_line, _, body = after_marker.partition(SEPARATOR)
    return Envelope(subject=subject_line.strip() or NO_SUBJECT, body=body.strip())
