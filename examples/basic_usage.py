"""
guestledger: Basic Usage Example

Demonstrates:
- Wiring a ledger, settlement engine and coordinator
- Watching submissions move from submitted to confirmed
- A rejected entry and a direct append from another client
"""

from guestledger import (
    Entry,
    EventType,
    LedgerStore,
    SettlementEngine,
    SettlementPolicy,
    SubmissionCoordinator,
)


def render(event):
    """Stand-in for a UI re-render."""
    if event.event_type is EventType.FAILED:
        print(f"  ❌ {event.submission.entry.author}: {event.error}")
    elif event.event_type is EventType.CONFIRMED:
        print(f"  ✅ {event.submission.entry.author} confirmed at #{event.submission.index}")
    for item in event.view:
        marker = f"#{item.index}" if item.index is not None else "…"
        print(f"     {marker:>4} {item.author}: {item.body}  [{item.status.value}]")


def main():
    print("=" * 60)
    print("guestledger: Basic Usage Example")
    print("=" * 60)

    ledger = LedgerStore()
    engine = SettlementEngine(
        ledger,
        policy=SettlementPolicy(max_body_length=140),
        settle_delay=0.2,
    ).connect()
    coordinator = SubmissionCoordinator(engine, ledger, timeout=5)
    coordinator.subscribe(render)

    print("\n1️⃣  Signing the guestbook...")
    first  = coordinator.submit("alice", "hi")
    second = coordinator.submit("bob", "x")

    print("\n2️⃣  A visitor who talks too much...")
    third = coordinator.submit("carol", "!" * 500)

    for sid in (first, second, third):
        coordinator.wait(sid)

    print("\n3️⃣  Someone else's client writes directly...")
    ledger.append(Entry("dave", "hello from elsewhere"))
    coordinator.refresh()

    engine.close()
    coordinator.close()
    print("\n✅ Done")


if __name__ == "__main__":
    main()
