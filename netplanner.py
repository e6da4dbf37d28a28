import os
import tkinter as tk
from dataclasses import replace
from tkinter import filedialog, messagebox
from typing import Dict, List, Optional

from session_log import SessionLogger

try:
    from ai.analysis_panel import AnalysisPanel
except Exception:
    AnalysisPanel = None

from topocore import DeviceKind, InteractionController, OperatingSystem, TopologyStore
from topocore import codec, policy
from topocore.errors import MalformedDocumentError
from topocore.geometry import ScreenTransform, distance_to_segment, port_label_positions

NODE_RADIUS = 28
DRAG_THRESHOLD = 5
LINK_HIT_TOL = 8

CANVAS_BG = "#f8fafc"
LINK_COLOR = "#64748b"
LINK_WIDTH = 3
DRAFT_COLOR = "#3b82f6"
DRAFT_DASH = (5, 5)
SELECT_COLOR = "#2563eb"

ZOOM_MIN = 0.2
ZOOM_MAX = 4.0

NODE_COLORS = {
    DeviceKind.ROUTER: "#ea580c",
    DeviceKind.SWITCH: "#2563eb",
    DeviceKind.MULTILAYER_SWITCH: "#9333ea",
    DeviceKind.SERVER: "#16a34a",
    DeviceKind.PC: "#475569",
}

FIELD_LABELS = {
    "name": "Device name",
    "ip_address": "IP address",
    "subnet_mask": "Subnet mask",
    "gateway": "Gateway",
    "vlan": "VLAN",
}


class PlannerApp:
    def __init__(self, root: tk.Tk):
        self.root = root

        self.store = TopologyStore()
        self.controller = InteractionController(self.store)
        self.current_file: Optional[str] = None

        # In-memory session log (saveable for debugging)
        self.session = SessionLogger()
        self.session.add("session_start", cwd=os.getcwd())
        self.store.subscribe(self.session.add)
        self.controller.subscribe(self.session.add)

        self.store.subscribe(lambda kind, **data: self.schedule_redraw())
        self.controller.subscribe(self._on_controller_event)
        self.controller.on_selection_change(lambda node_id: self.build_properties())

        # View transform (canvas space -> screen)
        self.zoom = 1.0
        self.pan = (0.0, 0.0)
        self.pan_last = None

        # Left press bookkeeping
        self.mouse_down_pos = None
        self.down_on_node = False
        self.moved_far = False

        self._redraw_job = None
        self._port_dialog: Optional[PortDialog] = None
        self._ctx_link: Optional[str] = None
        # Tk variables backing the properties form; Tk drops unreferenced ones.
        self._form_vars: List[tk.Variable] = []

        self.panes = tk.PanedWindow(root, orient=tk.HORIZONTAL, sashwidth=6, sashrelief=tk.RAISED)
        self.panes.pack(fill=tk.BOTH, expand=True)

        self.left = tk.Frame(self.panes, bg=CANVAS_BG)
        self.right = tk.Frame(self.panes, bg="#14161b", width=380)
        self.panes.add(self.left, stretch="always")
        self.panes.add(self.right, minsize=320)

        self.build_toolbar()

        self.canvas = tk.Canvas(self.left, bg=CANVAS_BG, width=1100, height=760, highlightthickness=0)
        self.canvas.pack(fill=tk.BOTH, expand=True)

        self.props = tk.Frame(self.right, bg="#1a1d23")
        self.props.pack(fill=tk.X, padx=6, pady=6)

        self.analysis_panel = None
        if AnalysisPanel is not None:
            self.analysis_panel = AnalysisPanel(
                self.right,
                get_topology_cb=lambda: (self.store.nodes, self.store.links),
                log_event_cb=self.session.add,
            )
            self.analysis_panel.pack(fill=tk.BOTH, expand=True)
        else:
            tk.Label(
                self.right,
                text="Analysis panel not available\n(editing still works)",
                fg="#cccccc",
                bg="#14161b",
                justify="left",
            ).pack(anchor="nw", padx=10, pady=10)

        self.link_menu = tk.Menu(self.root, tearoff=0)
        self.link_menu.add_command(label="Delete link", command=self._delete_ctx_link)

        self.build_menu()
        self.bind_events()
        self.build_properties()
        self.update_title()
        self.redraw()

    # ───────────────── Menu / toolbar ─────────────────

    def build_menu(self):
        menubar = tk.Menu(self.root)

        filemenu = tk.Menu(menubar, tearoff=0)
        filemenu.add_command(label="New", accelerator="Ctrl+N", command=self.new_file)
        filemenu.add_command(label="Open…", accelerator="Ctrl+O", command=self.open_file_dialog)
        filemenu.add_separator()
        filemenu.add_command(label="Save", accelerator="Ctrl+S", command=self.save_file)
        filemenu.add_command(label="Save As…", accelerator="Ctrl+Shift+S", command=self.save_file_as)
        filemenu.add_separator()
        filemenu.add_command(label="Save Session Log…", command=self.save_session_log)
        filemenu.add_separator()
        filemenu.add_command(label="Exit", command=self.root.quit)
        menubar.add_cascade(label="File", menu=filemenu)

        self.root.config(menu=menubar)

    def build_toolbar(self):
        self.toolbar = tk.Frame(self.left, bg="#e2e8f0")
        self.toolbar.pack(fill=tk.X, side=tk.TOP)

        for kind in DeviceKind:
            tk.Button(
                self.toolbar,
                text=f"+ {kind.label}",
                fg=NODE_COLORS[kind],
                relief=tk.FLAT,
                padx=8,
                pady=4,
                command=lambda k=kind: self.controller.add_device(k),
            ).pack(side=tk.LEFT, padx=4, pady=6)

        self.connect_btn = tk.Button(
            self.toolbar,
            text="Connect (C)",
            relief=tk.FLAT,
            padx=8,
            pady=4,
            command=self.controller.request_connect,
        )
        self.connect_btn.pack(side=tk.LEFT, padx=(16, 4), pady=6)

        self.status = tk.Label(self.toolbar, text="", fg="#475569", bg="#e2e8f0", padx=6)
        self.status.pack(side=tk.LEFT, padx=(4, 10))

    def update_title(self):
        base = "Net Planner"
        if self.current_file:
            base += f" - {self.current_file}"
        self.root.title(base)

        if self.controller.is_connecting:
            self.status.config(text="Click another device to connect… (ESC to cancel)", fg=DRAFT_COLOR)
        elif self.controller.selected_id is not None:
            self.status.config(text="Press C to connect the selected device", fg="#475569")
        else:
            self.status.config(text="", fg="#475569")

    # ───────────────── Files ─────────────────

    def new_file(self):
        self.store.clear()
        self.controller.reset()
        self.current_file = None
        self.update_title()

    def open_file_dialog(self):
        path = filedialog.askopenfilename(
            title="Open topology project",
            filetypes=[("Topology JSON", "*.json"), ("All files", "*.*")],
        )
        if not path:
            return
        self.load_from_path(path)

    def save_file(self):
        if self.current_file:
            self.save_to_path(self.current_file)
        else:
            self.save_file_as()

    def save_file_as(self):
        path = filedialog.asksaveasfilename(
            title="Save topology project",
            initialfile=codec.default_filename(),
            defaultextension=".json",
            filetypes=[("Topology JSON", "*.json"), ("All files", "*.*")],
        )
        if not path:
            return
        self.current_file = path
        self.save_to_path(path)
        self.update_title()

    def save_to_path(self, path: str):
        try:
            codec.write_path(self.store, path)
            self.session.add("save_project", path=path, nodeCount=len(self.store.nodes))
        except Exception as e:
            messagebox.showerror("Save failed", str(e))

    def load_from_path(self, path: str):
        try:
            nodes, links = codec.read_path(self.store, path)
        except MalformedDocumentError as e:
            self.session.add("load_project_rejected", path=path, error=str(e))
            messagebox.showerror("Invalid file", str(e))
            return
        except Exception as e:
            messagebox.showerror("Open failed", str(e))
            return
        self.controller.reset()
        self.current_file = path
        self.session.add("load_project", path=path, nodeCount=nodes, linkCount=links)
        self.update_title()

    def save_session_log(self):
        path = filedialog.asksaveasfilename(
            title="Save session log",
            initialfile=SessionLogger.default_filename(),
            defaultextension=".json",
        )
        if not path:
            return
        try:
            self.session.save_json(path)
        except Exception as e:
            messagebox.showerror("Session log", str(e))

    # ───────────────── Events ─────────────────

    def bind_events(self):
        self.canvas.bind("<KeyPress>", self.on_key)

        self.root.bind_all("<Control-n>", lambda e: self.new_file())
        self.root.bind_all("<Control-o>", lambda e: self.open_file_dialog())
        self.root.bind_all("<Control-s>", lambda e: self.save_file())
        self.root.bind_all("<Control-Shift-s>", lambda e: self.save_file_as())
        self.root.bind_all("<Control-Shift-S>", lambda e: self.save_file_as())

        self.canvas.bind("<Button-1>", self.on_mouse_down)
        self.canvas.bind("<B1-Motion>", self.on_mouse_move)
        self.canvas.bind("<Motion>", self.on_mouse_move)
        self.canvas.bind("<ButtonRelease-1>", self.on_mouse_up)

        # Pan (right drag on empty space); right click on a link opens its menu.
        self.canvas.bind("<Button-3>", self.on_right_down)
        self.canvas.bind("<B3-Motion>", self.on_pan_drag)
        self.canvas.bind("<ButtonRelease-3>", self.on_pan_up)

        self.canvas.bind("<MouseWheel>", lambda e: self.apply_zoom(1 if e.delta > 0 else -1, e.x, e.y))
        self.canvas.bind("<Button-4>", lambda e: self.apply_zoom(+1, e.x, e.y))
        self.canvas.bind("<Button-5>", lambda e: self.apply_zoom(-1, e.x, e.y))

        self.canvas.focus_set()

    def _on_controller_event(self, kind: str, **data):
        if kind == "connect_pending":
            # Defer so the press handler finishes before the modal grabs input.
            self.root.after_idle(self.open_port_dialog)
        self.update_title()
        self.schedule_redraw()

    def on_key(self, event):
        if self.controller.key_press(event.keysym):
            return "break"
        return None

    def node_at(self, sx: float, sy: float) -> Optional[str]:
        p = self.controller.transform.to_canvas(sx, sy)
        if p is None:
            return None
        # Topmost first: later nodes are drawn above earlier ones.
        for node in reversed(self.store.nodes):
            if (node.x - p[0]) ** 2 + (node.y - p[1]) ** 2 <= NODE_RADIUS ** 2:
                return node.id
        return None

    def link_at(self, sx: float, sy: float) -> Optional[str]:
        p = self.controller.transform.to_canvas(sx, sy)
        if p is None:
            return None
        tol = LINK_HIT_TOL / self.zoom
        best, best_d = None, float("inf")
        for link in self.store.links:
            a = self.store.find_node(link.source_id)
            b = self.store.find_node(link.target_id)
            if a is None or b is None:
                continue
            d = distance_to_segment(p, (a.x, a.y), (b.x, b.y))
            if d < best_d:
                best, best_d = link.id, d
        return best if best_d <= tol else None

    def on_mouse_down(self, event):
        self.canvas.focus_set()
        self.mouse_down_pos = (event.x, event.y)
        self.moved_far = False

        node_id = self.node_at(event.x, event.y)
        self.down_on_node = node_id is not None
        if node_id is not None:
            self.controller.press_node(node_id, event.x, event.y)

    def on_mouse_move(self, event):
        if self.mouse_down_pos is not None and not self.moved_far:
            dx = abs(event.x - self.mouse_down_pos[0])
            dy = abs(event.y - self.mouse_down_pos[1])
            if dx > DRAG_THRESHOLD or dy > DRAG_THRESHOLD:
                self.moved_far = True
        self.controller.pointer_move(event.x, event.y)
        if self.controller.is_connecting:
            self.schedule_redraw()

    def on_mouse_up(self, event):
        if self.mouse_down_pos is not None and not self.down_on_node and not self.moved_far:
            self.controller.click_canvas()
        self.controller.release()
        self.mouse_down_pos = None
        self.down_on_node = False
        self.moved_far = False

    def on_right_down(self, event):
        link_id = self.link_at(event.x, event.y)
        if link_id is not None and self.node_at(event.x, event.y) is None:
            self._ctx_link = link_id
            try:
                self.link_menu.tk_popup(event.x_root, event.y_root)
            finally:
                self.link_menu.grab_release()
            return
        self.pan_last = (event.x, event.y)

    def on_pan_drag(self, event):
        if self.pan_last is None:
            return
        dx = event.x - self.pan_last[0]
        dy = event.y - self.pan_last[1]
        self.pan_last = (event.x, event.y)
        self.pan = (self.pan[0] + dx, self.pan[1] + dy)
        self._sync_transform()

    def on_pan_up(self, event):
        self.pan_last = None

    def apply_zoom(self, direction: int, pivot_x: float, pivot_y: float):
        factor = 1.1 if direction > 0 else 0.9
        new_zoom = max(ZOOM_MIN, min(ZOOM_MAX, self.zoom * factor))
        if abs(new_zoom - self.zoom) < 1e-9:
            return
        # Keep the canvas point under the cursor fixed.
        p = self.controller.transform.to_canvas(pivot_x, pivot_y)
        self.zoom = new_zoom
        if p is not None:
            self.pan = (pivot_x - p[0] * new_zoom, pivot_y - p[1] * new_zoom)
        self._sync_transform()

    def _sync_transform(self):
        self.controller.transform = ScreenTransform(a=self.zoom, d=self.zoom, e=self.pan[0], f=self.pan[1])
        self.schedule_redraw()

    def _delete_ctx_link(self):
        if self._ctx_link is None:
            return
        link_id, self._ctx_link = self._ctx_link, None
        self.controller.delete_link(link_id)

    # ───────────────── Port dialog ─────────────────

    def open_port_dialog(self):
        pending = self.controller.pending
        if pending is None or self._port_dialog is not None:
            return
        source = self.store.find_node(pending.source_id)
        target = self.store.find_node(pending.target_id)
        if source is None or target is None:
            self.controller.cancel_ports()
            return

        def on_confirm(source_port: str, target_port: str):
            self._port_dialog = None
            self.controller.confirm_ports(source_port, target_port)

        def on_cancel():
            self._port_dialog = None
            self.controller.cancel_ports()

        self._port_dialog = PortDialog(
            self.root,
            f"{source.config.name} ({source.kind.label})",
            f"{target.config.name} ({target.kind.label})",
            pending.source_port,
            pending.target_port,
            on_confirm,
            on_cancel,
        )

    # ───────────────── Properties form ─────────────────

    def build_properties(self):
        for child in self.props.winfo_children():
            child.destroy()
        self._form_vars = []
        self.update_title()

        node_id = self.controller.selected_id
        node = self.store.find_node(node_id) if node_id else None
        if node is None:
            tk.Label(self.props, text="Select a device to edit it", fg="#9e9e9e", bg="#1a1d23").pack(
                anchor="w", padx=10, pady=10
            )
            return

        tk.Label(
            self.props,
            text=f"{node.kind.label} configuration",
            fg="#eaeaea",
            bg="#1a1d23",
            font=("Arial", 11, "bold"),
        ).pack(anchor="w", padx=10, pady=(8, 4))

        fields = policy.config_fields(node.kind)
        entries: Dict[str, tk.Entry] = {}
        for f in fields:
            if f not in FIELD_LABELS:
                continue
            row = tk.Frame(self.props, bg="#1a1d23")
            row.pack(fill=tk.X, padx=10, pady=2)
            tk.Label(row, text=FIELD_LABELS[f], width=12, anchor="w", fg="#cccccc", bg="#1a1d23").pack(side=tk.LEFT)
            entry = tk.Entry(row)
            value = getattr(node.config, f)
            entry.insert(0, "" if value is None else str(value))
            entry.pack(side=tk.LEFT, fill=tk.X, expand=True)
            entries[f] = entry

        if "os" in fields:
            self._build_os_and_services(node)

        row = tk.Frame(self.props, bg="#1a1d23")
        row.pack(fill=tk.X, padx=10, pady=8)
        tk.Button(row, text="Apply", command=lambda: self.apply_fields(node.id, entries)).pack(side=tk.LEFT)
        tk.Button(row, text="Delete device", fg="#dc2626", command=lambda: self.controller.delete_node(node.id)).pack(
            side=tk.RIGHT
        )

    def _build_os_and_services(self, node):
        row = tk.Frame(self.props, bg="#1a1d23")
        row.pack(fill=tk.X, padx=10, pady=2)
        tk.Label(row, text="Operating system", width=12, anchor="w", fg="#cccccc", bg="#1a1d23").pack(side=tk.LEFT)

        by_label = {os_.label: os_ for os_ in OperatingSystem}
        current = node.config.os or OperatingSystem.NONE
        os_var = tk.StringVar(value=current.label)
        self._form_vars.append(os_var)
        tk.OptionMenu(row, os_var, *by_label.keys(), command=lambda label: self.change_os(node.id, by_label[label])).pack(
            side=tk.LEFT
        )

        allowed = policy.allowed_services(node.config.os)
        if not allowed:
            return
        box = tk.LabelFrame(self.props, text=f"Services ({current.label})", fg="#cccccc", bg="#1a1d23")
        box.pack(fill=tk.X, padx=10, pady=4)
        for svc in allowed:
            var = tk.BooleanVar(value=svc in node.config.services)
            self._form_vars.append(var)
            tk.Checkbutton(
                box,
                text=svc.label,
                variable=var,
                bg="#1a1d23",
                fg="#cccccc",
                selectcolor="#0f1115",
                command=lambda s=svc: self.toggle_service(node.id, s),
            ).pack(anchor="w")

    def apply_fields(self, node_id: str, entries: Dict[str, tk.Entry]):
        node = self.store.find_node(node_id)
        if node is None:
            return
        changes = {}
        for f, entry in entries.items():
            text = entry.get()
            if f == "vlan":
                text = text.strip()
                if not text:
                    changes[f] = None
                    continue
                try:
                    changes[f] = int(text)
                except ValueError:
                    messagebox.showerror("Invalid VLAN", f"'{text}' is not a VLAN number.")
                    return
            elif f == "gateway":
                changes[f] = text or None
            else:
                changes[f] = text
        self.controller.update_config(node_id, replace(node.config, **changes))
        self.build_properties()

    def change_os(self, node_id: str, os_: OperatingSystem):
        node = self.store.find_node(node_id)
        if node is None:
            return
        self.controller.update_config(node_id, policy.change_os(node.config, os_))
        self.build_properties()

    def toggle_service(self, node_id: str, service):
        node = self.store.find_node(node_id)
        if node is None or not policy.is_service_allowed(node.config.os, service):
            return
        self.controller.update_config(node_id, policy.toggle_service(node.config, service))
        self.build_properties()

    # ───────────────── Drawing ─────────────────

    def schedule_redraw(self):
        if self._redraw_job is None:
            self._redraw_job = self.root.after_idle(self.redraw)

    def redraw(self):
        self._redraw_job = None
        t = self.controller.transform
        c = self.canvas
        c.delete("all")

        nodes = {n.id: n for n in self.store.nodes}
        for link in self.store.links:
            a = nodes.get(link.source_id)
            b = nodes.get(link.target_id)
            if a is None or b is None:
                continue
            x1, y1 = t.to_screen(a.x, a.y)
            x2, y2 = t.to_screen(b.x, b.y)
            c.create_line(x1, y1, x2, y2, fill=LINK_COLOR, width=LINK_WIDTH)

            for (px, py), text in zip(port_label_positions((a.x, a.y), (b.x, b.y)), (link.source_port, link.target_port)):
                sx, sy = t.to_screen(px, py)
                c.create_rectangle(sx - 20, sy - 9, sx + 20, sy + 9, fill="white", outline="")
                c.create_text(sx, sy, text=text, fill="#334155", font=("Courier", 8, "bold"))

        draft = self.controller.draft_line
        if draft is not None:
            (x1, y1), (x2, y2) = draft
            sx1, sy1 = t.to_screen(x1, y1)
            sx2, sy2 = t.to_screen(x2, y2)
            c.create_line(sx1, sy1, sx2, sy2, fill=DRAFT_COLOR, width=2, dash=DRAFT_DASH)

        focused = self.controller.selected_id
        r = NODE_RADIUS * self.zoom
        for node in nodes.values():
            sx, sy = t.to_screen(node.x, node.y)
            is_focused = node.id == focused
            c.create_oval(
                sx - r, sy - r, sx + r, sy + r,
                fill="white",
                outline=SELECT_COLOR if is_focused else "#cbd5e1",
                width=3 if is_focused else 2,
            )
            c.create_text(sx, sy, text=node.kind.prefix, fill=NODE_COLORS[node.kind], font=("Arial", 9, "bold"))
            c.create_text(sx, sy + r + 10, text=node.config.name, fill="#334155", font=("Arial", 9, "bold"))
            c.create_text(sx, sy + r + 24, text=node.config.ip_address, fill="#64748b", font=("Courier", 8))

        if not nodes:
            c.create_text(
                c.winfo_width() / 2 or 550,
                c.winfo_height() / 2 or 380,
                text="The canvas is empty.\nAdd devices from the toolbar to start designing.",
                fill="#64748b",
                justify="center",
            )


class PortDialog:
    """Modal dialog asking for the port label on each end of a new link."""

    def __init__(self, root, source_title, target_title, source_port, target_port, on_confirm, on_cancel):
        self.on_confirm = on_confirm
        self.on_cancel = on_cancel

        self.top = tk.Toplevel(root)
        self.top.title("Create connection")
        self.top.transient(root)
        self.top.protocol("WM_DELETE_WINDOW", self.cancel)

        frame = tk.Frame(self.top, padx=16, pady=12)
        frame.pack(fill=tk.BOTH, expand=True)

        tk.Label(frame, text=source_title, anchor="w").grid(row=0, column=0, sticky="w")
        tk.Label(frame, text="↔").grid(row=0, column=1, rowspan=2, padx=10)
        tk.Label(frame, text=target_title, anchor="e").grid(row=0, column=2, sticky="e")

        self.source_entry = tk.Entry(frame, width=14)
        self.source_entry.insert(0, source_port)
        self.source_entry.grid(row=1, column=0)
        self.target_entry = tk.Entry(frame, width=14, justify="right")
        self.target_entry.insert(0, target_port)
        self.target_entry.grid(row=1, column=2)

        buttons = tk.Frame(frame, pady=10)
        buttons.grid(row=2, column=0, columnspan=3, sticky="ew")
        tk.Button(buttons, text="Cancel", command=self.cancel).pack(side=tk.LEFT, expand=True, fill=tk.X)
        tk.Button(buttons, text="Connect", command=self.confirm).pack(side=tk.LEFT, expand=True, fill=tk.X)

        self.top.bind("<Return>", lambda e: self.confirm())
        self.top.bind("<Escape>", lambda e: self.cancel())
        self.source_entry.focus_set()
        self.top.grab_set()

    def _close(self):
        try:
            self.top.grab_release()
        finally:
            self.top.destroy()

    def confirm(self):
        source_port, target_port = self.source_entry.get(), self.target_entry.get()
        self._close()
        self.on_confirm(source_port, target_port)

    def cancel(self):
        self._close()
        self.on_cancel()


def main(argv: Optional[List[str]] = None):
    root = tk.Tk()
    app = PlannerApp(root)
    args = argv if argv is not None else []
    if args:
        app.load_from_path(args[0])
    root.mainloop()


if __name__ == "__main__":
    import sys

    main(sys.argv[1:])
