"""
Render communications as prompt-ready text.
"""

from ..models.communication import CommSubtype, CommType, Communication, ParticipantRole

CALL_STATUS_LABELS: dict[CommSubtype, str] = {
    CommSubtype.CALL_MISSED: 'Missed Call',
    CommSubtype.CALL_COMPLETED: 'Completed Call',
    CommSubtype.CALL_NO_ANSWER: 'No Answer',
    CommSubtype.CALL_BUSY: 'Line Busy',
    CommSubtype.CALL_CANCELED: 'Call Canceled',
    CommSubtype.CALL_FAILED: 'Call Failed',
}


def format_communication(communication: Communication) -> str:
    """Structured "Communication Information" block used as new_data."""
    lines = ['Communication Information:', f'Type: {communication.type.value}']
    lines.append(f'Subtype: {communication.subtype.value}')
    lines.append(f'Direction: {communication.direction.value}')

    if communication.type == CommType.CALL and communication.subtype in CALL_STATUS_LABELS:
        lines.append(f'Status: {CALL_STATUS_LABELS[communication.subtype]}')

    origin = communication.participant_with_role(ParticipantRole.CALLER, ParticipantRole.SENDER)
    target = communication.participant_with_role(ParticipantRole.RECIPIENT, ParticipantRole.RECEIVER)
    if origin:
        lines.append(f'From: {origin.value} ({origin.type})')
    if target:
        lines.append(f'To: {target.value} ({target.type})')
    if not origin and not target and communication.participants:
        listed = ', '.join(f'{p.value} ({p.type})' for p in communication.participants)
        lines.append(f'Participants: {listed}')

    lines.append(f'Time: {communication.timestamp.strftime("%Y-%m-%d %H:%M:%S %Z").strip()}')

    if communication.type == CommType.CALL:
        if communication.duration:
            minutes, seconds = divmod(communication.duration, 60)
            lines.append(f'Duration: {minutes}m {seconds}s')
        elif communication.subtype == CommSubtype.CALL_MISSED:
            lines.append('Duration: 0s (Missed Call)')

    text = '\n'.join(lines) + '\n'
    if communication.content:
        label = 'Transcript' if communication.type == CommType.CALL else 'Content'
        text += f'\n{label}:\n{communication.content}\n'
    if communication.recording_url:
        text += f'\nRecording URL: {communication.recording_url}\n'
    return text


def format_batch_transcript(communications: list[Communication]) -> str:
    """Join batch members in timestamp order, one ``[time] direction: content`` line each."""
    ordered = sorted(communications, key=lambda c: c.timestamp)
    lines = [
        f'[{c.timestamp.strftime("%Y-%m-%d %H:%M:%S")}] {c.direction.value}: {c.content or ""}'.rstrip()
        for c in ordered
    ]
    return '\n'.join(lines)
