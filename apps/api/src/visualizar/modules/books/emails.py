"""
Book Workflow Emails

Notifications sent as side effects of the book request workflow:
- New request -> all admins
- New request -> confirmation to the requesting teacher
- Book published -> the requesting teacher

Every user-supplied value is HTML-escaped before rendering.
"""

from html import escape

from visualizar.core.email import EmailClient

_STYLE = """
        body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
        .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
        .header { color: #1e3a8a; margin-bottom: 24px; }
        .details { background-color: #f3f4f6; padding: 16px; border-radius: 8px; margin: 16px 0; }
        .button { display: inline-block; background-color: #1e3a8a; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
        .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


def _page(body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_STYLE}</style>
    </head>
    <body>
        <div class="container">
            {body}
        </div>
    </body>
    </html>
    """


def _request_details(
    title: str,
    author_name: str,
    course_names: list[str],
    animations: list[str],
    comments: str | None,
) -> str:
    courses = ", ".join(escape(name) for name in course_names) or "-"
    rows = [
        f"<p><strong>Título:</strong> {escape(title)}</p>",
        f"<p><strong>Autor:</strong> {escape(author_name)}</p>",
        f"<p><strong>Cursos:</strong> {courses}</p>",
        f"<p><strong>Animaciones:</strong> {escape(', '.join(animations))}</p>",
    ]
    if comments:
        rows.append(f"<p><strong>Comentarios:</strong> {escape(comments)}</p>")
    return '<div class="details">' + "".join(rows) + "</div>"


async def send_request_notification_to_admins(
    client: EmailClient,
    admin_emails: list[str],
    *,
    teacher_name: str,
    teacher_email: str,
    title: str,
    author_name: str,
    course_names: list[str],
    animations: list[str],
    comments: str | None,
) -> bool:
    """Tell every admin a new request is waiting for review."""
    review_url = f"{client.frontend_url}/admin/book-requests"
    html_content = _page(
        f"""
            <h1 class="header">Nueva solicitud de libro</h1>

            <p>Un docente ha enviado una nueva solicitud de libro que requiere su revisión y aprobación.</p>

            <p><strong>Docente:</strong> {escape(teacher_name)} ({escape(teacher_email)})</p>

            {_request_details(title, author_name, course_names, animations, comments)}

            <a href="{review_url}" class="button">Revisar solicitud</a>

            <div class="footer">
                <p><strong>Panel de administración de Visualizar</strong></p>
                <p>Esta es una notificación automática. Por favor, no responda a este correo.</p>
            </div>
        """
    )
    return await client.send(
        to=admin_emails,
        subject=f'Nueva solicitud de libro: "{title}" - Acción requerida',
        html=html_content,
        text=f"{teacher_name} solicitó el libro '{title}' de {author_name}.",
    )


async def send_request_confirmation_to_teacher(
    client: EmailClient,
    teacher_email: str,
    *,
    teacher_name: str,
    title: str,
    author_name: str,
    course_names: list[str],
    animations: list[str],
    comments: str | None,
) -> bool:
    """Confirm to the teacher that the request was received."""
    html_content = _page(
        f"""
            <h1 class="header">Solicitud de libro enviada correctamente</h1>

            <p>¡Gracias, {escape(teacher_name)}!</p>

            <p>Tu solicitud de libro ha sido enviada exitosamente y está pendiente de revisión por los administradores.</p>

            {_request_details(title, author_name, course_names, animations, comments)}

            <div class="footer">
                <p><strong>Visualizar</strong></p>
                <p>Este es un correo electrónico automático de confirmación. Por favor, no responda a este correo.</p>
            </div>
        """
    )
    return await client.send(
        to=teacher_email,
        subject=f'Solicitud de libro enviada: "{title}"',
        html=html_content,
    )


async def send_book_published_to_teacher(
    client: EmailClient,
    teacher_email: str,
    *,
    teacher_name: str,
    title: str,
    book_name: str,
) -> bool:
    """Tell the requesting teacher their book is now available."""
    books_url = f"{client.frontend_url}/books"
    html_content = _page(
        f"""
            <h1 class="header">¡Tu libro ha sido publicado!</h1>

            <p>¡Felicitaciones, {escape(teacher_name)}!</p>

            <p>Tu solicitud <strong>{escape(title)}</strong> ha sido procesada y el libro
            <strong>{escape(book_name)}</strong> ya está disponible en la plataforma para tus estudiantes.</p>

            <a href="{books_url}" class="button">Ver libros</a>

            <div class="footer">
                <p><strong>Visualizar</strong></p>
                <p>Este es un correo electrónico automático de notificación. Por favor, no responda a este correo.</p>
            </div>
        """
    )
    return await client.send(
        to=teacher_email,
        subject=f'¡Tu libro "{book_name}" ha sido publicado!',
        html=html_content,
    )
