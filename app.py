from __future__ import annotations

import logging
import threading
import tkinter as tk
from tkinter import messagebox, ttk
from pathlib import Path
from typing import Any, Dict, List, Optional

from PIL import Image, ImageTk

from catalog import (
    BookFormError,
    CatalogError,
    CatalogStore,
    OlderBooksReport,
    build_older_report,
    parse_book_form,
)
from config import configure_logging, get_settings
from contacts import Contact, filter_by_family_suffix, load_contacts
from geo import Coordinate, Route, describe_route, fetch_route, geocode_address
from tiles import MapViewport, render_base_map

logger = logging.getLogger(__name__)

SELECTED_COLOR = "#1f5fd6"
ROUTE_COLOR = "#1f5fd6"
ROUTE_WIDTH = 5
PIN_COLOR = "#c32e26"


# --------------------------------------------------------------------------- #
# Utility helpers
# --------------------------------------------------------------------------- #
def truncate(value: str, length: int) -> str:
    if len(value) <= length:
        return value
    return value[: length - 1] + "…"


# --------------------------------------------------------------------------- #
# Books tab
# --------------------------------------------------------------------------- #
class BooksFrame(ttk.Frame):
    def __init__(self, master: ttk.Notebook, controller: "MainApplication"):
        super().__init__(master, padding=12)
        self.controller = controller
        self.books: List[Dict[str, Any]] = []
        self._build_ui()

    def _build_ui(self) -> None:
        self.columnconfigure(0, weight=1)
        self.rowconfigure(2, weight=1)

        form = ttk.LabelFrame(self, text="New Book", padding=8)
        form.grid(row=0, column=0, sticky="ew")
        form.columnconfigure(1, weight=1)
        form.columnconfigure(3, weight=1)

        self.name_var = tk.StringVar()
        self.author_var = tk.StringVar()
        self.year_var = tk.StringVar()
        self.pages_var = tk.StringVar()
        self.address_var = tk.StringVar()

        ttk.Label(form, text="Name:").grid(row=0, column=0, sticky="w", pady=2)
        ttk.Entry(form, textvariable=self.name_var).grid(
            row=0, column=1, sticky="ew", padx=(4, 12), pady=2
        )
        ttk.Label(form, text="Author Name:").grid(row=0, column=2, sticky="w", pady=2)
        ttk.Entry(form, textvariable=self.author_var).grid(
            row=0, column=3, sticky="ew", padx=(4, 0), pady=2
        )

        ttk.Label(form, text="Year of Publish:").grid(row=1, column=0, sticky="w", pady=2)
        ttk.Entry(form, textvariable=self.year_var, width=8).grid(
            row=1, column=1, sticky="ew", padx=(4, 12), pady=2
        )
        ttk.Label(form, text="Number of Pages:").grid(row=1, column=2, sticky="w", pady=2)
        ttk.Entry(form, textvariable=self.pages_var, width=8).grid(
            row=1, column=3, sticky="ew", padx=(4, 0), pady=2
        )

        ttk.Label(form, text="Publisher Address:").grid(row=2, column=0, sticky="w", pady=2)
        ttk.Entry(form, textvariable=self.address_var).grid(
            row=2, column=1, columnspan=3, sticky="ew", padx=(4, 0), pady=2
        )

        ttk.Button(form, text="Add Book", command=self.add_book).grid(
            row=3, column=0, columnspan=4, pady=(8, 0)
        )

        years = get_settings().older_than_years
        filters = ttk.LabelFrame(self, text="Filter", padding=8)
        filters.grid(row=1, column=0, sticky="ew", pady=(8, 8))
        ttk.Button(
            filters,
            text=f"Show Books Older Than {years} Years",
            command=self.show_older_books,
        ).grid(row=0, column=0, sticky="w")

        body = ttk.Frame(self)
        body.grid(row=2, column=0, sticky="nsew")
        body.columnconfigure(0, weight=1)
        body.rowconfigure(0, weight=1)

        columns = ("id", "name", "author", "year", "address", "pages")
        self.tree = ttk.Treeview(body, columns=columns, show="headings", selectmode="browse")
        self.tree.heading("id", text="Id")
        self.tree.heading("name", text="Name")
        self.tree.heading("author", text="Author")
        self.tree.heading("year", text="Year of Publish")
        self.tree.heading("address", text="Publisher Address")
        self.tree.heading("pages", text="Number of Pages")
        self.tree.column("id", width=50, anchor="center")
        self.tree.column("name", width=200, anchor="w")
        self.tree.column("author", width=160, anchor="w")
        self.tree.column("year", width=110, anchor="center")
        self.tree.column("address", width=260, anchor="w")
        self.tree.column("pages", width=120, anchor="center")
        self.tree.tag_configure("map-selected", foreground=SELECTED_COLOR)
        self.tree.grid(row=0, column=0, sticky="nsew")
        self.tree.bind("<<TreeviewSelect>>", self._on_select_book)

        tree_scroll = ttk.Scrollbar(body, orient="vertical", command=self.tree.yview)
        tree_scroll.grid(row=0, column=1, sticky="ns")
        self.tree.configure(yscrollcommand=tree_scroll.set)

        self.delete_button = ttk.Button(
            body, text="Delete", command=self._delete_book, state="disabled"
        )
        self.delete_button.grid(row=1, column=0, sticky="w", pady=(8, 0))

    # ------------------------------------------------------------------
    def refresh_books(self) -> None:
        try:
            self.books = self.controller.store.list_books()
        except CatalogError as error:
            self.controller.set_status(f"Unable to load books: {error}")
            return

        selected = self.controller.selected_book
        selected_id = selected["id"] if selected else None
        if selected_id is not None and not any(b["id"] == selected_id for b in self.books):
            self.controller.select_book_for_map(None)
            selected_id = None

        self.tree.delete(*self.tree.get_children())
        for book in self.books:
            tags = ("map-selected",) if book["id"] == selected_id else ()
            self.tree.insert(
                "",
                "end",
                iid=str(book["id"]),
                values=(
                    book["id"],
                    book["name"],
                    book["author_name"],
                    book["year_of_publish"],
                    book["publisher_address"],
                    book["number_of_pages"],
                ),
                tags=tags,
            )
        self.delete_button.configure(state="disabled")

    def add_book(self) -> None:
        try:
            record = parse_book_form(
                self.name_var.get(),
                self.author_var.get(),
                self.year_var.get(),
                self.pages_var.get(),
                self.address_var.get(),
            )
        except BookFormError as error:
            messagebox.showerror("Invalid book", str(error), parent=self)
            return

        try:
            self.controller.store.add_book(record)
        except CatalogError as error:
            messagebox.showerror("Error", str(error), parent=self)
            return

        for var in (self.name_var, self.author_var, self.year_var, self.pages_var, self.address_var):
            var.set("")
        self.controller.set_status(f"Added '{record['name']}'.")
        self.refresh_books()

    def show_older_books(self) -> None:
        report = build_older_report(self.books, years=get_settings().older_than_years)
        OlderBooksDialog(self.controller, report)

    def _selected_id(self) -> Optional[int]:
        selection = self.tree.selection()
        return int(selection[0]) if selection else None

    def _on_select_book(self, _event: tk.Event) -> None:
        book_id = self._selected_id()
        if book_id is None:
            self.delete_button.configure(state="disabled")
            return
        book = next((b for b in self.books if b["id"] == book_id), None)
        self.delete_button.configure(state="normal")
        self.controller.select_book_for_map(book)
        for iid in self.tree.get_children(""):
            self.tree.item(iid, tags=("map-selected",) if iid == str(book_id) else ())

    def _delete_book(self) -> None:
        book_id = self._selected_id()
        if book_id is None:
            return
        try:
            self.controller.store.delete_book(book_id)
        except CatalogError as error:
            messagebox.showerror("Error", str(error), parent=self)
            return
        self.controller.set_status(f"Deleted book {book_id}.")
        self.refresh_books()


class OlderBooksDialog(tk.Toplevel):
    def __init__(self, controller: "MainApplication", report: OlderBooksReport):
        super().__init__(controller)
        self.title(f"Older than {report.years} Years")
        self.geometry("420x360")

        listbox = tk.Listbox(self, activestyle="none")
        listbox.pack(fill="both", expand=True, padx=12, pady=(12, 6))
        listbox.insert("end", f"Percentage: {report.percentage_label}")
        for book in report.books:
            listbox.insert("end", f"Name: {book['name']}")

        ttk.Button(self, text="Close", command=self.destroy).pack(pady=(0, 12))


# --------------------------------------------------------------------------- #
# Map tab
# --------------------------------------------------------------------------- #
class MapFrame(ttk.Frame):
    default_size = (800, 560)

    def __init__(self, master: ttk.Notebook, controller: "MainApplication"):
        super().__init__(master, padding=12)
        self.controller = controller
        self.publisher_coordinate: Optional[Coordinate] = None
        self.destination: Optional[Coordinate] = None
        self.route: Optional[Route] = None
        self.viewport: Optional[MapViewport] = None
        self.base_image: Optional[ImageTk.PhotoImage] = None
        self._book_id: Optional[int] = None

        self.rowconfigure(0, weight=1)
        self.columnconfigure(0, weight=1)
        self.canvas = tk.Canvas(self, background="#e5e3df", highlightthickness=0)
        self.canvas.grid(row=0, column=0, sticky="nsew")
        self.canvas.bind("<Button-1>", self._on_click)

        self.info_label = ttk.Label(self, text="", anchor="w")
        self.info_label.grid(row=1, column=0, sticky="ew", pady=(8, 0))

    # ------------------------------------------------------------------
    def _canvas_size(self) -> tuple:
        width = self.canvas.winfo_width()
        height = self.canvas.winfo_height()
        if width < 50 or height < 50:
            return self.default_size
        return width, height

    def on_show(self) -> None:
        """Reset the camera and locate the selected book's publisher."""
        book = self.controller.selected_book
        self.viewport = None
        if not book:
            self._book_id = None
            self.publisher_coordinate = None
            self.destination = None
            self.route = None
            self._show_placeholder()
            return

        if book["id"] != self._book_id:
            self._book_id = book["id"]
            self.publisher_coordinate = None
            self.destination = None
            self.route = None
        self.info_label.configure(text=f"Locating {truncate(book['publisher_address'], 60)}…")
        self.controller.set_status("Geocoding publisher address…")
        threading.Thread(
            target=self._geocode_thread, args=(book["id"], book["publisher_address"]), daemon=True
        ).start()

    def _show_placeholder(self) -> None:
        self.canvas.delete("all")
        self.base_image = None
        width, height = self._canvas_size()
        self.canvas.create_text(
            width / 2,
            height / 2,
            text="Please select a book from the Books tab.",
            fill="#888888",
            font=("Helvetica", 13),
        )
        self.info_label.configure(text="")

    def _geocode_thread(self, book_id: int, address: str) -> None:
        coordinate = geocode_address(address)
        self.after(0, lambda: self._on_geocoded(book_id, coordinate))

    def _on_geocoded(self, book_id: int, coordinate: Optional[Coordinate]) -> None:
        if book_id != self._book_id:
            return
        if coordinate is None:
            self.canvas.delete("all")
            self.info_label.configure(text="Error geocoding publisher address.")
            self.controller.set_status("Error geocoding publisher address.")
            return
        self.publisher_coordinate = coordinate
        self.controller.set_status("Publisher located. Click the map to pick a destination.")
        self._fit_camera()
        self._render()

    def _fit_camera(self) -> None:
        if not self.publisher_coordinate:
            return
        points = [self.publisher_coordinate]
        if self.route:
            points.extend(self.route.coordinates)
        elif self.destination:
            points.append(self.destination)
        width, height = self._canvas_size()
        self.viewport = MapViewport.fitting(points, width, height)

    def _render(self) -> None:
        if not self.viewport:
            return
        viewport = self.viewport
        threading.Thread(target=self._tiles_thread, args=(viewport,), daemon=True).start()
        self._draw_overlays()

    def _tiles_thread(self, viewport: MapViewport) -> None:
        image = render_base_map(viewport)
        self.after(0, lambda: self._on_tiles_ready(viewport, image))

    def _on_tiles_ready(self, viewport: MapViewport, image: Image.Image) -> None:
        if viewport is not self.viewport:
            return
        self.base_image = ImageTk.PhotoImage(image)
        self.canvas.delete("base")
        self.canvas.create_image(0, 0, anchor="nw", image=self.base_image, tags=("base",))
        self.canvas.tag_lower("base")

    def _draw_overlays(self) -> None:
        self.canvas.delete("overlay")
        if not self.viewport or not self.publisher_coordinate:
            return
        if self.route and len(self.route.coordinates) > 1:
            points: List[float] = []
            for coord in self.route.coordinates:
                points.extend(self.viewport.to_screen(coord))
            self.canvas.create_line(
                *points, fill=ROUTE_COLOR, width=ROUTE_WIDTH, capstyle="round", tags=("overlay",)
            )
        if self.destination:
            dx, dy = self.viewport.to_screen(self.destination)
            self.canvas.create_oval(
                dx - 6, dy - 6, dx + 6, dy + 6, fill="#ffffff", outline=ROUTE_COLOR, width=3, tags=("overlay",)
            )
        px, py = self.viewport.to_screen(self.publisher_coordinate)
        self.canvas.create_oval(
            px - 9, py - 9, px + 9, py + 9, fill=PIN_COLOR, outline="#ffffff", width=2, tags=("overlay",)
        )
        self.canvas.create_text(
            px, py - 20, text="Publisher", font=("Helvetica", 11, "bold"), fill=PIN_COLOR, tags=("overlay",)
        )

    def _on_click(self, event: tk.Event) -> None:
        if not self.viewport or not self.publisher_coordinate:
            return
        destination = self.viewport.to_coordinate(event.x, event.y)
        logger.info("Selected destination %.5f, %.5f", destination.latitude, destination.longitude)
        self.destination = destination
        self.route = None
        self._draw_overlays()
        self.info_label.configure(text="Calculating directions…")
        threading.Thread(
            target=self._route_thread,
            args=(self._book_id, self.publisher_coordinate, destination),
            daemon=True,
        ).start()

    def _route_thread(self, book_id: Optional[int], source: Coordinate, destination: Coordinate) -> None:
        route = fetch_route(source, destination)
        self.after(0, lambda: self._on_route(book_id, destination, route))

    def _on_route(self, book_id: Optional[int], destination: Coordinate, route: Optional[Route]) -> None:
        if book_id != self._book_id or destination != self.destination:
            return
        self.route = route
        if route is None:
            self.info_label.configure(text="No route available to this point.")
        else:
            self.info_label.configure(text=f"Route: {describe_route(route)}")
        self._draw_overlays()


# --------------------------------------------------------------------------- #
# Contacts tab
# --------------------------------------------------------------------------- #
class ContactsFrame(ttk.Frame):
    def __init__(self, master: ttk.Notebook, controller: "MainApplication"):
        super().__init__(master, padding=12)
        self.controller = controller
        self.suffix = get_settings().contact_suffix
        self.contacts: List[Contact] = []

        self.rowconfigure(1, weight=1)
        self.columnconfigure(0, weight=1)
        ttk.Label(
            self, text=f"Ending with '{self.suffix}'", font=("Helvetica", 14, "bold")
        ).grid(row=0, column=0, sticky="w", pady=(0, 8))

        self.listbox = tk.Listbox(self, activestyle="none")
        self.listbox.grid(row=1, column=0, sticky="nsew")
        scroll = ttk.Scrollbar(self, orient="vertical", command=self.listbox.yview)
        scroll.grid(row=1, column=1, sticky="ns")
        self.listbox.configure(yscrollcommand=scroll.set)

    def on_show(self) -> None:
        threading.Thread(target=self._load_thread, daemon=True).start()

    def _load_thread(self) -> None:
        contacts = filter_by_family_suffix(load_contacts(), self.suffix)
        self.after(0, lambda: self._on_loaded(contacts))

    def _on_loaded(self, contacts: List[Contact]) -> None:
        self.contacts = contacts
        self.listbox.delete(0, "end")
        for contact in contacts:
            self.listbox.insert("end", f"Name: {contact.given_name} {contact.family_name}")
        self.controller.set_status(f"{len(contacts)} contacts ending with '{self.suffix}'.")


# --------------------------------------------------------------------------- #
# Main application
# --------------------------------------------------------------------------- #
class MainApplication(tk.Tk):
    def __init__(self, db_path: Optional[Path] = None):
        super().__init__()
        self.title("Book Catalog")
        self.geometry("1100x760")
        self.minsize(900, 640)

        self.store = CatalogStore(db_path)
        self.selected_book: Optional[Dict[str, Any]] = None
        self.status_var = tk.StringVar(value="Ready.")

        self._build_ui()

    def _build_ui(self) -> None:
        self.notebook = ttk.Notebook(self)
        self.notebook.pack(fill="both", expand=True)

        self.books_frame = BooksFrame(self.notebook, self)
        self.notebook.add(self.books_frame, text="Books")

        self.map_frame = MapFrame(self.notebook, self)
        self.notebook.add(self.map_frame, text="Map")

        self.contacts_frame = ContactsFrame(self.notebook, self)
        self.notebook.add(self.contacts_frame, text="Contacts")

        self.notebook.bind("<<NotebookTabChanged>>", self._on_tab_changed)

        status_bar = ttk.Label(self, textvariable=self.status_var, anchor="w", padding=(8, 4))
        status_bar.pack(side="bottom", fill="x")

        self.protocol("WM_DELETE_WINDOW", self.on_close)
        self.books_frame.refresh_books()

    # ------------------------------------------------------------------
    def set_status(self, message: str) -> None:
        self.status_var.set(message)

    def select_book_for_map(self, book: Optional[Dict[str, Any]]) -> None:
        self.selected_book = book
        if book:
            self.set_status(f"Selected '{book['name']}' for the map.")

    def _on_tab_changed(self, _event: tk.Event) -> None:
        current = self.nametowidget(self.notebook.select())
        if current is self.books_frame:
            self.books_frame.refresh_books()
        elif current is self.map_frame:
            self.map_frame.on_show()
        elif current is self.contacts_frame:
            self.contacts_frame.on_show()

    def on_close(self) -> None:
        try:
            self.store.close()
        finally:
            self.destroy()


if __name__ == "__main__":
    configure_logging()
    get_settings().ensure_dirs()
    app = MainApplication()
    app.mainloop()
