from io import BytesIO


def render_pdf(pages, resolution=150.0) -> bytes:
    """Write Pillow images as the pages of one PDF document."""
    if not pages:
        raise ValueError('At least one page is required to render a PDF.')
    first, *rest = [page.convert('RGB') for page in pages]
    buffer = BytesIO()
    first.save(buffer, format='PDF', save_all=True, append_images=rest, resolution=resolution)
    return buffer.getvalue()
