"""
Tests for provider webhook parsers.

Tests cover:
- JustCall v2 SMS and call events (direct and data-wrapped)
- JustCall v1 flat payloads
- Twilio voice and messaging callbacks
- Status/direction/timestamp normalisation helpers
- Fallback synthesis on decoder failure and unknown-event rejection
"""

from datetime import datetime, timezone

import pytest

from comms_orchestrator.errors import UnknownEventError, UnsupportedServiceError
from comms_orchestrator.models.communication import (
    CommSubtype,
    CommType,
    Direction,
    ParticipantRole,
)
from comms_orchestrator.parsers import (
    JustCallParser,
    TwilioParser,
    get_parser,
    map_call_status,
    map_direction,
    parse_timestamp,
)


@pytest.fixture
def justcall() -> JustCallParser:
    return JustCallParser()


@pytest.fixture
def twilio() -> TwilioParser:
    return TwilioParser()


# =============================================================================
# Helpers
# =============================================================================


class TestMapCallStatus:
    def test_known_statuses(self):
        assert map_call_status('completed') == CommSubtype.CALL_COMPLETED
        assert map_call_status('no-answer') == CommSubtype.CALL_NO_ANSWER
        assert map_call_status('Busy') == CommSubtype.CALL_BUSY
        assert map_call_status('cancelled') == CommSubtype.CALL_CANCELED
        assert map_call_status('failed') == CommSubtype.CALL_FAILED

    def test_first_recognised_candidate_wins(self):
        assert map_call_status(None, 'weird', 'missed') == CommSubtype.CALL_MISSED

    def test_unknown_maps_to_other(self):
        assert map_call_status('ringing') == CommSubtype.CALL_OTHER
        assert map_call_status() == CommSubtype.CALL_OTHER


class TestMapDirection:
    def test_outbound_variants(self):
        for value in ('outbound', 'Outgoing', 'outbound-api', 'outbound-dial'):
            assert map_direction(value) == Direction.OUTBOUND

    def test_anything_else_is_inbound(self):
        assert map_direction('incoming') == Direction.INBOUND
        assert map_direction(None) == Direction.INBOUND

    def test_first_non_empty_candidate_decides(self):
        assert map_direction('', 'outgoing') == Direction.OUTBOUND
        assert map_direction('incoming', 'outgoing') == Direction.INBOUND


class TestParseTimestamp:
    def test_iso_with_z(self):
        ts = parse_timestamp('2025-03-01T10:15:00Z')
        assert ts == datetime(2025, 3, 1, 10, 15, tzinfo=timezone.utc)

    def test_naive_iso_assumed_utc(self):
        assert parse_timestamp('2025-03-01 10:15:00').tzinfo == timezone.utc

    def test_epoch_seconds_and_millis(self):
        expected = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert parse_timestamp(1735689600) == expected
        assert parse_timestamp('1735689600000') == expected

    def test_rfc2822(self):
        ts = parse_timestamp('Sat, 01 Mar 2025 10:15:00 +0000')
        assert ts == datetime(2025, 3, 1, 10, 15, tzinfo=timezone.utc)

    def test_skips_unparseable_candidates(self):
        ts = parse_timestamp('not a date', None, '2025-03-01T00:00:00+00:00')
        assert ts.year == 2025

    def test_falls_back_to_now(self):
        before = datetime.now(timezone.utc)
        assert parse_timestamp(None, 'garbage') >= before


class TestGetParser:
    def test_case_insensitive_lookup(self):
        assert isinstance(get_parser(' JustCall '), JustCallParser)
        assert isinstance(get_parser('twilio'), TwilioParser)

    def test_unknown_service_raises(self):
        with pytest.raises(UnsupportedServiceError) as exc_info:
            get_parser('ringcentral')
        assert 'justcall' in exc_info.value.context['supported']


# =============================================================================
# JustCall
# =============================================================================


class TestJustCallSms:
    def test_incoming_sms_without_event_type(self, justcall):
        payload = {
            'direction': 'incoming',
            'contact_number': '+15551234567',
            'justcall_number': '+15559999999',
            'sms_info': {'body': 'Roof leak update'},
        }

        comm = justcall.parse(payload, raw_webhook_id='wh-1')

        assert comm.type == CommType.SMS
        assert comm.subtype == CommSubtype.SMS_MESSAGE
        assert comm.direction == Direction.INBOUND
        assert comm.content == 'Roof leak update'
        assert comm.raw_webhook_id == 'wh-1'
        assert comm.parse_error is None
        assert [(p.value, p.role) for p in comm.participants] == [
            ('+15551234567', ParticipantRole.SENDER),
            ('+15559999999', ParticipantRole.RECEIVER),
        ]

    def test_outbound_sms_puts_agent_first(self, justcall):
        payload = {
            'type': 'sms.sent',
            'data': {
                'direction': 'outgoing',
                'contact_number': '+15551234567',
                'justcall_number': '+15559999999',
                'sms_info': {'body': 'On our way'},
                'sms_date': '2025-03-01',
                'sms_time': '09:30:00',
            },
        }

        comm = justcall.parse(payload)

        assert comm.direction == Direction.OUTBOUND
        assert comm.participants[0].value == '+15559999999'
        assert comm.participants[0].role == ParticipantRole.SENDER
        assert comm.participants[1].role == ParticipantRole.RECEIVER
        assert comm.timestamp == datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)

    def test_missing_numbers_yield_placeholder(self, justcall):
        comm = justcall.parse({'type': 'sms.received', 'sms_info': {'body': 'hi'}})

        assert len(comm.participants) == 1
        assert comm.participants[0].value == 'unknown'
        assert comm.participants[0].role == ParticipantRole.UNKNOWN


class TestJustCallCalls:
    def test_completed_call_with_notes(self, justcall):
        payload = {
            'type': 'call.completed',
            'data': {
                'direction': 'incoming',
                'contact_number': '+15551234567',
                'justcall_number': '+15559999999',
                'call_duration': '125',
                'datetime': '2025-03-01T10:00:00Z',
                'call_info': {
                    'status': 'completed',
                    'notes': 'Homeowner confirmed Tuesday install.',
                    'recording': 'https://recordings.example/abc.mp3',
                },
            },
        }

        comm = justcall.parse(payload)

        assert comm.type == CommType.CALL
        assert comm.subtype == CommSubtype.CALL_COMPLETED
        assert comm.duration == 125
        assert comm.content == 'Homeowner confirmed Tuesday install.'
        assert comm.recording_url == 'https://recordings.example/abc.mp3'
        assert comm.participants[0].role == ParticipantRole.CALLER
        assert comm.participants[0].value == '+15551234567'

    def test_event_suffix_used_when_status_missing(self, justcall):
        comm = justcall.parse({'type': 'call.missed', 'contact_number': '+15551234567'})
        assert comm.subtype == CommSubtype.CALL_MISSED

    def test_transcript_turns_rendered_when_no_notes(self, justcall):
        payload = {
            'type': 'call.completed',
            'justcall_ai': {
                'call_transcript': [
                    {'speaker': 'Agent', 'text': 'Hello'},
                    {'speaker': 'Customer', 'text': 'The gutter is loose'},
                    {'speaker': 'Agent'},
                ],
            },
        }

        comm = justcall.parse(payload)

        assert comm.content == 'Agent: Hello\nCustomer: The gutter is loose'

    def test_ai_summary_preferred_over_transcript(self, justcall):
        payload = {
            'type': 'call.completed',
            'justcall_ai': {
                'call_summary': 'Customer reports loose gutter.',
                'call_transcript': ['raw turn'],
            },
        }
        assert justcall.parse(payload).content == 'Customer reports loose gutter.'

    def test_outbound_call_roles(self, justcall):
        comm = justcall.parse({
            'type': 'call.completed',
            'direction': 'outgoing',
            'contact_number': '+15551234567',
            'justcall_number': '+15559999999',
        })
        assert comm.participants[0].value == '+15559999999'
        assert comm.participants[0].role == ParticipantRole.CALLER


class TestJustCallV1:
    def test_flat_call(self, justcall):
        comm = justcall.parse({
            'type': 'call',
            'from': '+15551234567',
            'to': '+15559999999',
            'status': 'busy',
            'duration': 0,
            'notes': 'Line busy',
        })
        assert comm.type == CommType.CALL
        assert comm.subtype == CommSubtype.CALL_BUSY
        assert comm.content == 'Line busy'
        assert comm.participants[0].role == ParticipantRole.CALLER

    def test_flat_sms(self, justcall):
        comm = justcall.parse({
            'type': 'sms',
            'direction': 'outbound',
            'from': '+15559999999',
            'to': '+15551234567',
            'text': 'Crew arrives at 8',
        })
        assert comm.type == CommType.SMS
        assert comm.direction == Direction.OUTBOUND
        assert comm.content == 'Crew arrives at 8'
        assert comm.participants[0].value == '+15559999999'
        assert comm.participants[1].role == ParticipantRole.SENDER


class TestJustCallFailures:
    def test_unknown_event_raises(self, justcall):
        with pytest.raises(UnknownEventError):
            justcall.parse({'event': 'contact.updated', 'name': 'Jane'})

    def test_non_dict_payload_raises(self, justcall):
        with pytest.raises(UnknownEventError):
            justcall.parse(['not', 'a', 'dict'])

    def test_decoder_crash_synthesizes_fallback(self, justcall, monkeypatch):
        from comms_orchestrator.parsers import justcall as justcall_module

        def _boom(self):
            raise RuntimeError('boom')

        monkeypatch.setattr(justcall_module.JustCallV2Sms, 'to_communication', _boom)

        comm = justcall.parse(
            {'type': 'sms.received', 'sms_info': {'body': 'hi'}},
            raw_webhook_id='wh-9',
        )

        assert comm.type == CommType.SMS
        assert comm.subtype == CommSubtype.SMS_MESSAGE
        assert comm.parse_error == 'RuntimeError: boom'
        assert comm.raw_webhook_id == 'wh-9'
        assert comm.participants[0].value == 'unknown'

    def test_fallback_for_call_payload_is_call_other(self, justcall, monkeypatch):
        from comms_orchestrator.parsers import justcall as justcall_module

        def _boom(self):
            raise ValueError('bad field')

        monkeypatch.setattr(justcall_module.JustCallV2Call, 'to_communication', _boom)

        comm = justcall.parse({'type': 'call.completed'})

        assert comm.type == CommType.CALL
        assert comm.subtype == CommSubtype.CALL_OTHER
        assert comm.parse_error.startswith('ValueError')


# =============================================================================
# Twilio
# =============================================================================


class TestTwilio:
    def test_voice_callback(self, twilio):
        comm = twilio.parse({
            'CallSid': 'CA123',
            'CallStatus': 'no-answer',
            'From': '+15551234567',
            'To': '+15559999999',
            'Direction': 'inbound',
            'CallDuration': '0',
        })
        assert comm.type == CommType.CALL
        assert comm.subtype == CommSubtype.CALL_NO_ANSWER
        assert comm.direction == Direction.INBOUND
        assert comm.duration == 0
        assert comm.participants[0].role == ParticipantRole.CALLER
        assert comm.participants[1].role == ParticipantRole.RECIPIENT

    def test_outbound_voice_swaps_roles(self, twilio):
        comm = twilio.parse({
            'CallSid': 'CA124',
            'CallStatus': 'completed',
            'From': '+15559999999',
            'To': '+15551234567',
            'Direction': 'outbound-api',
        })
        assert comm.direction == Direction.OUTBOUND
        assert comm.participants[0].role == ParticipantRole.RECIPIENT
        assert comm.participants[1].role == ParticipantRole.CALLER

    def test_message_callback(self, twilio):
        comm = twilio.parse({
            'MessageSid': 'SM1',
            'From': '+15551234567',
            'To': '+15559999999',
            'Body': 'Is the crew coming today?',
        })
        assert comm.type == CommType.SMS
        assert comm.subtype == CommSubtype.SMS_MESSAGE
        assert comm.content == 'Is the crew coming today?'
        assert comm.participants[0].role == ParticipantRole.SENDER

    def test_unrecognised_payload_raises(self, twilio):
        with pytest.raises(UnknownEventError):
            twilio.parse({'AccountSid': 'AC1'})
