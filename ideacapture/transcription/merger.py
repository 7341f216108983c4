"""Merging of overlapping speech recognition hypotheses.

Recognizers re-score the entire utterance on every partial result, so a new
hypothesis usually repeats most of what is already known. Naive
concatenation duplicates words; `merge_transcripts` recovers the stable part
and lets the unstable tail be rewritten.

Rules, first match wins:
 1. empty side -> the other side
 2. incoming extends previous -> incoming
 3. incoming is a prefix of previous -> previous (never shrink)
 4. suffix of previous overlaps prefix of incoming (case-insensitive,
    at most MAX_OVERLAP characters) -> overlap-joined
 5. common prefix -> previous[:P] joined with the corrected tail
 6. no relation -> appended as a new clause
"""

MAX_OVERLAP = 64


def merge_transcripts(previous: str, incoming: str) -> str:
    """Merge a new hypothesis into the previously accumulated transcript.

    Args:
        previous: Transcript accumulated so far
        incoming: Latest hypothesis from the recognizer

    Returns:
        The merged transcript
    """
    previous = previous.strip()
    incoming = incoming.strip()

    if not previous:
        return incoming
    if not incoming:
        return previous

    if incoming.startswith(previous):
        return incoming
    if previous.startswith(incoming):
        return previous

    overlap = _suffix_prefix_overlap(previous, incoming)
    if overlap:
        return previous + incoming[overlap:]

    prefix = _common_prefix_length(previous, incoming)
    if prefix:
        return _join(previous[:prefix], incoming[prefix:])

    return _join(previous, incoming)


def _suffix_prefix_overlap(previous: str, incoming: str) -> int:
    """Length of the longest suffix of previous equal to a prefix of incoming."""
    longest = min(MAX_OVERLAP, len(previous), len(incoming))
    for length in range(longest, 0, -1):
        if previous[-length:].lower() == incoming[:length].lower():
            return length
    return 0


def _common_prefix_length(a: str, b: str) -> int:
    length = 0
    for left, right in zip(a, b):
        if left != right:
            break
        length += 1
    return length


def _join(left: str, right: str) -> str:
    """Join two fragments with exactly one space between them."""
    left = left.rstrip()
    right = right.lstrip()
    if not left:
        return right
    if not right:
        return left
    return f"{left} {right}"
