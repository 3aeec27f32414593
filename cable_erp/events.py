from __future__ import annotations

from blinker import Namespace

signals = Namespace()

# Sent with no payload beyond the sender once the finished-goods stock
# document has been rewritten.
stock_updated = signals.signal("stock-updated")

# Sent by the sync service whenever its status changes.
sync_status_changed = signals.signal("sync-status-changed")
