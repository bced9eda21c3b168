from conftest import make_user, session_for
from studenthousing import db
from studenthousing.models import Message
from studenthousing.services.change_feed import ChangeEvent, ChangeFeed, change_feed, event_stream
from studenthousing.services.messaging import MessagingService


def test_committed_message_reaches_participants_only(tenant, owner, listing):
    conversation, _, _ = MessagingService(session_for(tenant)).start_conversation(listing.id)
    stranger = make_user('eve@student.example')

    with MessagingService(session_for(owner)).subscribe() as owner_feed, \
            MessagingService(session_for(stranger)).subscribe() as stranger_feed:
        message = MessagingService(session_for(tenant)).send_message(conversation.id, 'Is this still available?')

        events = owner_feed.drain()
        assert [e.event_type for e in events] == ['INSERT']
        assert events[0].record['id'] == message.id
        assert events[0].record['conversation_id'] == conversation.id
        assert events[0].record['read'] is False
        assert stranger_feed.drain() == []


def test_subscription_can_be_limited_to_one_conversation(tenant, owner, listing):
    from conftest import make_property

    other = make_property(owner, title='Studio by the park')
    first, _, _ = MessagingService(session_for(tenant)).start_conversation(listing.id)
    second, _, _ = MessagingService(session_for(tenant)).start_conversation(other.id)

    with MessagingService(session_for(owner)).subscribe(conversation_id=second.id) as feed:
        MessagingService(session_for(tenant)).send_message(first.id, 'About the room')
        MessagingService(session_for(tenant)).send_message(second.id, 'About the studio')

        events = feed.drain()
        assert [e.record['conversation_id'] for e in events] == [second.id]


def test_rollback_publishes_nothing(tenant, owner, listing):
    conversation, _, _ = MessagingService(session_for(tenant)).start_conversation(listing.id)

    with MessagingService(session_for(owner)).subscribe() as feed:
        db.session.add(Message(conversation_id=conversation.id, sender_id=tenant.id, body='draft'))
        db.session.flush()
        db.session.rollback()

        assert feed.drain() == []
    assert Message.query.count() == 0


def test_mark_read_publishes_update_only_when_messages_flip(tenant, owner, listing):
    conversation, _, _ = MessagingService(session_for(tenant)).start_conversation(listing.id, 'Hello')
    owner_messaging = MessagingService(session_for(owner))

    with MessagingService(session_for(tenant)).subscribe() as tenant_feed:
        owner_messaging.mark_read(conversation.id)
        owner_messaging.mark_read(conversation.id)

        events = tenant_feed.drain()
        assert [e.event_type for e in events] == ['UPDATE']
        assert events[0].record == {
            'conversation_id': conversation.id,
            'reader_id': owner.id,
            'read_count': 1,
        }


def test_flipping_read_on_a_message_publishes_update(tenant, owner, listing):
    _, message, _ = MessagingService(session_for(tenant)).start_conversation(listing.id, 'Hello')

    with MessagingService(session_for(tenant)).subscribe() as feed:
        message.read = True
        db.session.commit()

        events = feed.drain()
        assert [(e.event_type, e.record['read']) for e in events] == [('UPDATE', True)]


def test_closed_subscription_discards_events():
    feed = ChangeFeed()
    subscription = feed.subscribe('messages')
    change = ChangeEvent(table='messages', event_type='INSERT', record={'id': 1})

    assert feed.publish(change) == 1
    subscription.close()
    subscription.close()

    assert feed.subscriber_count() == 0
    assert feed.publish(change) == 0
    assert subscription.deliver(change) is False
    assert subscription.get(timeout=0) is None


def test_row_filter_and_table_must_match():
    feed = ChangeFeed()
    subscription = feed.subscribe('messages', row_filter={'conversation_id': 7})

    feed.publish(ChangeEvent(table='messages', event_type='INSERT', record={'conversation_id': 8}))
    feed.publish(ChangeEvent(table='reviews', event_type='INSERT', record={'conversation_id': 7}))
    feed.publish(ChangeEvent(table='messages', event_type='INSERT', record={'conversation_id': 7}))

    assert [e.record for e in subscription.drain()] == [{'conversation_id': 7}]


def test_event_stream_frames_and_closes_subscription():
    feed = ChangeFeed()
    subscription = feed.subscribe('messages')
    feed.publish(ChangeEvent(table='messages', event_type='INSERT', record={'id': 3}))

    stream = event_stream(subscription, keepalive=0)
    assert next(stream) == ': connected\n\n'
    frame = next(stream)
    assert frame.startswith('event: insert\ndata: ')
    assert '"record": {"id": 3}' in frame
    assert next(stream) == ': keepalive\n\n'

    stream.close()
    assert subscription.closed
    assert feed.subscriber_count() == 0


def test_session_hooks_are_registered_once(app):
    from sqlalchemy import event
    from sqlalchemy.orm import Session
    from studenthousing.services.change_feed import _stage_message_changes, register_session_hooks

    register_session_hooks()
    register_session_hooks()
    assert event.contains(Session, 'after_flush', _stage_message_changes)
    assert change_feed.subscriber_count() == 0


def stream_token(user):
    from conftest import auth_headers

    return auth_headers(user)['Authorization'].split(' ', 1)[1]


def test_stream_endpoint_delivers_to_participant_and_closes(client, tenant, owner, listing):
    conversation, _, _ = MessagingService(session_for(tenant)).start_conversation(listing.id)

    response = client.get(f'/api/conversations/stream?jwt={stream_token(owner)}', buffered=False)
    assert response.status_code == 200
    assert response.mimetype == 'text/event-stream'
    frames = iter(response.response)
    assert next(frames) == b': connected\n\n'
    assert change_feed.subscriber_count() == 1

    MessagingService(session_for(tenant)).send_message(conversation.id, 'Is this still available?')
    frame = next(frames).decode()
    assert frame.startswith('event: insert\n')
    assert f'"conversation_id": {conversation.id}' in frame

    response.close()
    assert change_feed.subscriber_count() == 0


def test_stream_endpoint_skips_other_users_messages(client, tenant, listing):
    conversation, _, _ = MessagingService(session_for(tenant)).start_conversation(listing.id)
    stranger = make_user('eve@student.example')

    response = client.get(f'/api/conversations/stream?jwt={stream_token(stranger)}', buffered=False)
    frames = iter(response.response)
    next(frames)

    MessagingService(session_for(tenant)).send_message(conversation.id, 'Private question')
    assert next(frames) == b': keepalive\n\n'

    response.close()
    assert change_feed.subscriber_count() == 0


def test_stream_endpoint_rejects_foreign_conversation_and_missing_token(client, tenant, listing):
    conversation, _, _ = MessagingService(session_for(tenant)).start_conversation(listing.id)
    stranger = make_user('eve@student.example')

    response = client.get(f'/api/conversations/stream?conversation_id={conversation.id}&jwt={stream_token(stranger)}')
    assert response.status_code == 404
    assert client.get('/api/conversations/stream').status_code == 401
    assert change_feed.subscriber_count() == 0
