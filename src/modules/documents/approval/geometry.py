"""
Conversión entre píxeles DOM de una página PDF renderizada y puntos PDF.

Las coordenadas DOM parten de la esquina superior izquierda con Y hacia
abajo. Los puntos PDF parten de la esquina inferior izquierda con Y hacia
arriba. Ambas funciones son puras; ``to_dom_pixel`` se vuelve a llamar
cuando cambia el tamaño renderizado, el punto PDF guardado no cambia.
"""
from typing import Tuple

from modules.documents.approval.errors import OutOfBoundsError

PAGE_WIDTH_PT = 595.0
PAGE_HEIGHT_PT = 842.0


def _clamp(value: float, upper: float) -> float:
    return max(0.0, min(value, upper))


def _check_rendered(rendered_width: float, rendered_height: float) -> None:
    if rendered_width <= 0 or rendered_height <= 0:
        raise OutOfBoundsError("Rendered page dimensions must be positive")


def to_pdf_point(
    dom_x: float,
    dom_y: float,
    rendered_width: float,
    rendered_height: float,
    page_width_pt: float = PAGE_WIDTH_PT,
    page_height_pt: float = PAGE_HEIGHT_PT,
) -> Tuple[float, float]:
    """Lleva un click sobre la página renderizada a puntos PDF, recortado a la página"""
    _check_rendered(rendered_width, rendered_height)
    sx = page_width_pt / rendered_width
    sy = page_height_pt / rendered_height

    x = dom_x * sx
    y = page_height_pt - (dom_y * sy)
    return _clamp(x, page_width_pt), _clamp(y, page_height_pt)


def to_dom_pixel(
    pdf_x: float,
    pdf_y: float,
    rendered_width: float,
    rendered_height: float,
    page_width_pt: float = PAGE_WIDTH_PT,
    page_height_pt: float = PAGE_HEIGHT_PT,
) -> Tuple[float, float]:
    """Inversa de to_pdf_point"""
    _check_rendered(rendered_width, rendered_height)
    dom_x = pdf_x * (rendered_width / page_width_pt)
    dom_y_flipped = page_height_pt - pdf_y
    dom_y = dom_y_flipped * (rendered_height / page_height_pt)
    return dom_x, dom_y


def is_inside_page(
    x: float,
    y: float,
    page_width_pt: float = PAGE_WIDTH_PT,
    page_height_pt: float = PAGE_HEIGHT_PT,
) -> bool:
    return 0 <= x <= page_width_pt and 0 <= y <= page_height_pt
