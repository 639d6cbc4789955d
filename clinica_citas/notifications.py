"""
Notificaciones por email de las citas.

EmailService es el puerto que usa el caso de uso; SmtpEmailService es el
adaptador real (smtplib + plantillas HTML). Ambos métodos lanzan
NotificationError si el envío falla: decidir qué hacer con el error es
responsabilidad de quien llama.
"""
from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import pytz

from .config import Settings
from .errors import NotificationError
from .models import Cita, nombre_servicio

logger = logging.getLogger(__name__)

TIMEZONE = pytz.timezone("America/Caracas")

MESES = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)


def formatear_fecha(dt: datetime) -> str:
    """Ej: "19 de octubre de 2026, 14:30" (hora de Caracas)."""
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    local = dt.astimezone(TIMEZONE)
    return f"{local.day} de {MESES[local.month - 1]} de {local.year}, {local:%H:%M}"


class EmailService(ABC):
    """Puerto de notificaciones."""

    @abstractmethod
    async def enviar_email_cita(self, cita: Cita) -> None:
        """Aviso a la clínica con todos los datos del paciente."""

    @abstractmethod
    async def enviar_email_confirmacion(self, cita: Cita) -> None:
        """Confirmación al paciente."""


class SmtpEmailService(EmailService):
    def __init__(self, settings: Settings, timeout: int = 30):
        self.settings = settings
        self.timeout = timeout

    # -------------------------
    # Transporte
    # -------------------------
    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        context = ssl.create_default_context()
        if s.email_port == 465:
            server = smtplib.SMTP_SSL(s.email_host, s.email_port, context=context, timeout=self.timeout)
        else:
            server = smtplib.SMTP(s.email_host, s.email_port, timeout=self.timeout)

        try:
            if s.email_port != 465:
                server.starttls(context=context)
            server.login(s.email_user or "", s.email_pass or "")
        except (smtplib.SMTPException, OSError):
            server.close()
            raise
        return server

    def _send_sync(self, msg: MIMEMultipart, recipients: list[str]) -> None:
        server = self._connect()
        try:
            server.sendmail(self.settings.email_user or "", recipients, msg.as_string())
        finally:
            server.quit()

    async def _send(self, msg: MIMEMultipart, recipients: list[str], cita_id: str) -> None:
        try:
            await asyncio.to_thread(self._send_sync, msg, recipients)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error al enviar email '{msg['Subject']}' para cita {cita_id}: {e}")
            raise NotificationError(f"Error al enviar email: {e}") from e
        logger.info(f"Email '{msg['Subject']}' enviado para cita {cita_id}")

    async def verificar_conexion(self) -> bool:
        def _check() -> None:
            self._connect().quit()

        try:
            await asyncio.to_thread(_check)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error al verificar el transportador de correo: {e}")
            return False
        logger.info("Servidor de correo listo para enviar mensajes")
        return True

    def _mensaje(self, subject: str, from_addr: str, to: str, html: str, cc: str | None = None) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = from_addr
        msg["To"] = to
        if cc:
            msg["Cc"] = cc
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    # -------------------------
    # Emails
    # -------------------------
    async def enviar_email_cita(self, cita: Cita) -> None:
        s = self.settings
        servicio = nombre_servicio(cita.service)
        msg = self._mensaje(
            subject=f"Nueva Cita - {servicio} - {cita.name}",
            from_addr=f'"Sistema de Citas - {s.clinic_name}" <{s.email_user}>',
            to=s.clinic_email,
            cc=s.email_user,
            html=self.render_email_cita(cita),
        )
        recipients = [addr for addr in (s.clinic_email, s.email_user) if addr]
        await self._send(msg, recipients, cita.id)

    async def enviar_email_confirmacion(self, cita: Cita) -> None:
        s = self.settings
        servicio = nombre_servicio(cita.service)
        msg = self._mensaje(
            subject=f"Confirmación de Cita - {servicio}",
            from_addr=f'"{s.clinic_name}" <{s.email_user}>',
            to=cita.email,
            html=self.render_email_confirmacion(cita),
        )
        await self._send(msg, [cita.email], cita.id)

    # -------------------------
    # Plantillas HTML
    # -------------------------
    def render_email_cita(self, cita: Cita) -> str:
        s = self.settings
        clinic = escape(s.clinic_name)
        name = escape(cita.name)
        email = escape(cita.email)
        phone = escape(cita.phone)

        bloque_mensaje = ""
        if cita.message:
            bloque_mensaje = f"""
          <div style="background-color: #fef3c7; padding: 20px; border-radius: 8px; margin-bottom: 25px;">
            <h3 style="color: #92400e; margin: 0 0 15px 0; font-size: 18px;">Mensaje del Paciente</h3>
            <p style="margin: 0; color: #78350f; line-height: 1.6;">{escape(cita.message)}</p>
          </div>"""

        return f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; background-color: #f9f9f9;">
        <div style="background-color: #ffffff; padding: 30px; border-radius: 10px;">
          <div style="text-align: center; margin-bottom: 30px;">
            <h1 style="color: #2563eb; margin: 0; font-size: 28px;">{clinic}</h1>
            <p style="color: #6b7280; margin: 10px 0 0 0; font-size: 16px;">Nueva Solicitud de Cita</p>
          </div>
          <div style="background-color: #dbeafe; padding: 20px; border-radius: 8px; margin-bottom: 25px;">
            <h2 style="color: #1e40af; margin: 0 0 15px 0; font-size: 20px;">Detalles de la Cita</h2>
            <p style="margin: 5px 0; color: #374151;"><strong>ID de Cita:</strong> {escape(cita.id)}</p>
            <p style="margin: 5px 0; color: #374151;"><strong>Fecha de Solicitud:</strong> {formatear_fecha(cita.created_at)}</p>
            <p style="margin: 5px 0; color: #374151;"><strong>Servicio:</strong> {escape(nombre_servicio(cita.service))}</p>
          </div>
          <div style="background-color: #f3f4f6; padding: 20px; border-radius: 8px; margin-bottom: 25px;">
            <h3 style="color: #374151; margin: 0 0 15px 0; font-size: 18px;">Información del Paciente</h3>
            <p style="margin: 8px 0; color: #374151;"><strong>Nombre:</strong> {name}</p>
            <p style="margin: 8px 0; color: #374151;"><strong>Email:</strong> <a href="mailto:{email}" style="color: #2563eb;">{email}</a></p>
            <p style="margin: 8px 0; color: #374151;"><strong>Teléfono:</strong> <a href="tel:{phone}" style="color: #2563eb;">{phone}</a></p>
          </div>{bloque_mensaje}
          <div style="text-align: center; margin-top: 30px; padding-top: 20px; border-top: 1px solid #e5e7eb;">
            <p style="color: #6b7280; margin: 0; font-size: 14px;">
              Este mensaje fue enviado automáticamente desde el sistema de citas de {clinic}
            </p>
            <p style="color: #6b7280; margin: 5px 0 0 0; font-size: 14px;">
              Teléfono: {escape(s.clinic_phone)} | Email: {escape(s.clinic_email)}
            </p>
          </div>
        </div>
      </div>
    """

    def render_email_confirmacion(self, cita: Cita) -> str:
        s = self.settings
        clinic = escape(s.clinic_name)
        phone = escape(s.clinic_phone)
        email = escape(s.clinic_email)

        direccion = ""
        if s.clinic_address:
            direccion = f"""
            <p style="color: #6b7280; margin: 5px 0 0 0; font-size: 14px;">{escape(s.clinic_address)}</p>"""

        return f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; background-color: #f9f9f9;">
        <div style="background-color: #ffffff; padding: 30px; border-radius: 10px;">
          <div style="text-align: center; margin-bottom: 30px;">
            <h1 style="color: #059669; margin: 0; font-size: 28px;">Cita Confirmada</h1>
            <p style="color: #6b7280; margin: 10px 0 0 0; font-size: 16px;">{clinic}</p>
          </div>
          <div style="background-color: #d1fae5; padding: 20px; border-radius: 8px; margin-bottom: 25px;">
            <h2 style="color: #065f46; margin: 0 0 15px 0; font-size: 20px;">¡Gracias por tu solicitud!</h2>
            <p style="margin: 0; color: #065f46; line-height: 1.6;">
              Hola <strong>{escape(cita.name)}</strong>, hemos recibido tu solicitud de cita exitosamente.
              Nuestro equipo médico revisará tu información y te contactaremos pronto.
            </p>
          </div>
          <div style="background-color: #f3f4f6; padding: 20px; border-radius: 8px; margin-bottom: 25px;">
            <h3 style="color: #374151; margin: 0 0 15px 0; font-size: 18px;">Detalles de tu Cita</h3>
            <p style="margin: 8px 0; color: #374151;"><strong>ID de Cita:</strong> {escape(cita.id)}</p>
            <p style="margin: 8px 0; color: #374151;"><strong>Servicio:</strong> {escape(nombre_servicio(cita.service))}</p>
            <p style="margin: 8px 0; color: #374151;"><strong>Fecha de Solicitud:</strong> {formatear_fecha(cita.created_at)}</p>
            <p style="margin: 8px 0; color: #374151;"><strong>Estado:</strong> <span style="color: #f59e0b; font-weight: bold;">En Revisión</span></p>
          </div>
          <div style="background-color: #dbeafe; padding: 20px; border-radius: 8px; margin-bottom: 25px;">
            <h3 style="color: #1e40af; margin: 0 0 15px 0; font-size: 18px;">Próximos Pasos</h3>
            <ul style="margin: 0; padding-left: 20px; color: #1e40af;">
              <li style="margin-bottom: 8px;">Nuestro equipo médico revisará tu solicitud</li>
              <li style="margin-bottom: 8px;">Te contactaremos en las próximas 24-48 horas</li>
              <li style="margin-bottom: 8px;">Confirmaremos la fecha y hora de tu cita</li>
              <li style="margin-bottom: 0;">Te enviaremos recordatorios antes de tu cita</li>
            </ul>
          </div>
          <div style="background-color: #fef3c7; padding: 20px; border-radius: 8px; margin-bottom: 25px;">
            <h3 style="color: #92400e; margin: 0 0 15px 0; font-size: 18px;">¿Necesitas ayuda?</h3>
            <p style="margin: 0; color: #78350f; line-height: 1.6;">
              Si tienes alguna pregunta o necesitas modificar tu cita, no dudes en contactarnos:
            </p>
            <p style="margin: 10px 0 0 0; color: #78350f;">
              <strong>Teléfono:</strong> <a href="tel:{phone}" style="color: #92400e;">{phone}</a><br>
              <strong>Email:</strong> <a href="mailto:{email}" style="color: #92400e;">{email}</a>
            </p>
          </div>
          <div style="text-align: center; margin-top: 30px; padding-top: 20px; border-top: 1px solid #e5e7eb;">
            <p style="color: #6b7280; margin: 0; font-size: 14px;">
              Gracias por confiar en {clinic} para tu cuidado médico
            </p>{direccion}
          </div>
        </div>
      </div>
    """
