from events import BehaviorChannel, Channel


def test_channel_delivers_in_subscription_order():
    channel = Channel()
    received = []
    channel.subscribe(lambda v: received.append(("a", v)))
    channel.subscribe(lambda v: received.append(("b", v)))

    channel.publish(1)
    channel.publish(2)

    assert received == [("a", 1), ("b", 1), ("a", 2), ("b", 2)]


def test_unsubscribe_stops_delivery():
    channel = Channel()
    received = []
    unsubscribe = channel.subscribe(received.append)
    channel.publish("first")
    unsubscribe()
    unsubscribe()
    channel.publish("second")

    assert received == ["first"]
    assert len(channel) == 0


def test_behavior_channel_replays_current_value():
    channel = BehaviorChannel("initial")
    channel.publish("latest")
    received = []
    channel.subscribe(received.append)
    channel.publish("next")

    assert received == ["latest", "next"]
    assert channel.value == "next"
