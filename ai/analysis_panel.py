import copy
import threading
import tkinter as tk
from typing import Any, Callable, List, Optional, Sequence, Tuple

from topocore.model import Link, Node

from .analyst import NetworkAnalyst, FAILURE_MESSAGE


class AnalysisPanel(tk.Frame):
    """
    Right-side panel:
      - "Analyze network" button
      - transcript of past analyses

    Callbacks:
      get_topology_cb() -> (nodes, links)
    """
    def __init__(
        self,
        master,
        get_topology_cb: Callable[[], Tuple[Sequence[Node], Sequence[Link]]],
        log_event_cb: Optional[Callable[..., None]] = None,
        analyst: Optional[NetworkAnalyst] = None,
        **kwargs,
    ):
        super().__init__(master, bg="#14161b", **kwargs)

        self.get_topology_cb = get_topology_cb
        self.log_event_cb = log_event_cb
        self.analyst = analyst or NetworkAnalyst()
        self.history: List[str] = []

        self._build_ui()

    def _log(self, kind: str, **data: Any) -> None:
        if not self.log_event_cb:
            return
        try:
            self.log_event_cb(kind, **data)
        except Exception:
            pass

    def _build_ui(self):
        header = tk.Label(
            self,
            text="Network review",
            bg="#14161b",
            fg="#eaeaea",
            font=("Arial", 11, "bold"),
            anchor="w",
            padx=10,
            pady=8,
        )
        header.pack(fill=tk.X)

        self.transcript = tk.Text(
            self,
            height=20,
            bg="#0f1115",
            fg="#eaeaea",
            insertbackground="#eaeaea",
            wrap="word",
            padx=10,
            pady=8,
            relief=tk.FLAT,
        )
        self.transcript.pack(fill=tk.BOTH, expand=True, padx=10, pady=(0, 10))
        self.transcript.configure(state="disabled")

        row = tk.Frame(self, bg="#14161b")
        row.pack(fill=tk.X, padx=10, pady=(0, 10))

        self.analyze_btn = tk.Button(row, text="Analyze network", command=self.on_analyze)
        self.analyze_btn.pack(side=tk.LEFT)

        self.clear_btn = tk.Button(row, text="Clear", command=self.on_clear)
        self.clear_btn.pack(side=tk.RIGHT)

    def _append(self, text: str):
        self.transcript.configure(state="normal")
        self.transcript.insert("end", text.strip() + "\n\n")
        self.transcript.configure(state="disabled")
        self.transcript.see("end")

    def on_clear(self):
        self.history.clear()
        self.transcript.configure(state="normal")
        self.transcript.delete("1.0", "end")
        self.transcript.configure(state="disabled")

    def on_analyze(self):
        try:
            nodes, links = self.get_topology_cb()
        except Exception:
            nodes, links = [], []
        # Snapshot so later edits on the UI thread don't race the request.
        nodes, links = copy.deepcopy(list(nodes)), copy.deepcopy(list(links))

        self._log("analysis_request", nodeCount=len(nodes), linkCount=len(links))
        self._append("Analyzing…")
        self.analyze_btn.configure(state=tk.DISABLED)

        def worker():
            try:
                text = self.analyst.analyze(nodes, links)
            except Exception as e:
                self._log("analysis_error", error=str(e))
                text = FAILURE_MESSAGE

            def done():
                self.history.append(text)
                self._append(text)
                self._log(
                    "analysis_reply",
                    chars=len(text),
                    error=self.analyst.last_error,
                )
                self.analyze_btn.configure(state=tk.NORMAL)

            self.after(0, done)

        threading.Thread(target=worker, daemon=True).start()
