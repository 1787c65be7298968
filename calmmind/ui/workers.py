from __future__ import annotations

from PySide6.QtCore import QObject, Signal, Slot

from ..controller import ConversationController, PendingSend


class ReplyWorker(QObject):
    finished = Signal(object)
    failed = Signal(str)

    def __init__(self, controller: ConversationController, pending: PendingSend) -> None:
        super().__init__()
        self._controller = controller
        self._pending = pending

    @Slot()
    def run(self) -> None:
        try:
            # Only the model call runs here; controller state is updated on the GUI thread
            reply = self._controller.request_reply(self._pending)
        except Exception as exc:  # pragma: no cover - runtime safety
            self.failed.emit(str(exc))
            return
        self.finished.emit(reply)
