from __future__ import annotations

import os

import requests
import streamlit as st

from clinica_citas.client import enviar_cita, jwt_is_expired, jwt_payload, obtener_token
from clinica_citas.models import nombre_servicio, servicios_validos

st.set_page_config(page_title="Solicitud de Cita", layout="centered")

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:3000")


def is_logged_in() -> bool:
    token = st.session_state.get("token")
    return bool(token) and isinstance(token, str) and not jwt_is_expired(token)


def do_logout() -> None:
    st.session_state.pop("token", None)
    st.rerun()



# Sidebar: credenciales del cliente

with st.sidebar:
    st.header("Acceso API")

    if not is_logged_in():
        cid = st.text_input("Client ID", key="client_id")
        csecret = st.text_input("Client Secret", type="password", key="client_secret")
        cifradas = st.checkbox("Credenciales cifradas (CryptoJS)", key="encrypted")

        if st.button("Obtener token", key="token_btn"):
            try:
                st.session_state["token"] = obtener_token(API_BASE, cid.strip(), csecret, encrypted=cifradas)
                st.success("Token obtenido.")
                st.rerun()
            except PermissionError:
                st.error("Credenciales inválidas.")
            except requests.RequestException as e:
                st.error(f"API no disponible o error: {e}")
    else:
        payload = jwt_payload(st.session_state["token"])
        st.write(f"Cliente: **{payload.get('clientId', '-')}**")
        if st.button("Salir", key="logout_btn"):
            do_logout()

    st.divider()
    st.caption(f"API: {API_BASE}")



# UI

st.title("Solicita tu cita")

if not is_logged_in():
    st.warning("Obtén un token de acceso desde la barra lateral.")
    st.stop()

with st.form("cita_form"):
    service = st.selectbox("Servicio", options=servicios_validos(), format_func=nombre_servicio)
    name = st.text_input("Nombre completo")
    email = st.text_input("Email")
    phone = st.text_input("Teléfono")
    message = st.text_area("Mensaje (opcional)", max_chars=1000)
    enviado = st.form_submit_button("Enviar solicitud")

if enviado:
    try:
        res = enviar_cita(
            API_BASE,
            st.session_state["token"],
            {"name": name, "email": email, "phone": phone, "service": service, "message": message},
        )
    except PermissionError:
        st.error("Sesión expirada: obtén un nuevo token.")
        st.session_state.pop("token", None)
    except requests.RequestException as e:
        st.error(f"Error al enviar la cita: {e}")
    else:
        if res.get("success"):
            st.success(res.get("message", "Cita enviada."))
            st.caption(f"ID de cita: {res.get('appointmentId')}")
        else:
            st.error(res.get("message", "No se pudo crear la cita."))
