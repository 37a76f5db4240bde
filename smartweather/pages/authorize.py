import html

import streamlit as st

from smartweather.errors import AuthExchangeError
from smartweather.oauth import CredentialManager, code_from_redirect


def render(manager: CredentialManager):
    st.markdown("<div class='section-title'>Authorization Required</div>", unsafe_allow_html=True)

    if not manager.config.client_id or not manager.config.redirect_uri:
        st.error("SMARTTHINGS_CLIENT_ID and SMARTTHINGS_REDIRECT_URI must be set to authorize.")
        return

    auth_error = st.session_state.get("auth_error")
    if auth_error:
        st.error(f"Authorization failed: {auth_error}")
        if st.button("Clear & Retry Authorization"):
            manager.logout()
            st.session_state.pop("auth_error", None)
            st.session_state.pop("auth_request", None)
            st.rerun()

    request = st.session_state.get("auth_request")
    if request is None:
        # sessions share the stored state; a fresh one would void the pending code
        request = manager.pending_authorization() or manager.begin_authorization()
        st.session_state.auth_request = request

    st.write("Open this URL on your phone or computer and approve access to SmartThings:")
    st.markdown(f"<div class='auth-url'>{html.escape(request.url)}</div>", unsafe_allow_html=True)
    st.link_button("Open authorization page", request.url)
    st.caption(
        "After approving you are redirected to the callback URL. Paste the whole URL, "
        "or just the value after code=, below."
    )

    with st.form("auth_code_form"):
        pasted = st.text_input("Authorization code", placeholder="Enter authorization code")
        submitted = st.form_submit_button("Submit Code")

    if submitted:
        code, state = code_from_redirect(pasted)
        if not code:
            st.warning("Please enter the authorization code.")
            return
        with st.spinner("Processing..."):
            try:
                manager.complete_authorization(code, state=state)
            except AuthExchangeError as exc:
                st.session_state.pop("auth_request", None)
                st.session_state.auth_error = str(exc)
                st.rerun()
        st.session_state.pop("auth_request", None)
        st.session_state.pop("auth_error", None)
        st.success("Authorized.")
        st.rerun()
