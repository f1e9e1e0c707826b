import io
import logging
import time

from PIL import Image, UnidentifiedImageError
from flask import Flask, request, jsonify, send_file

from chat_state import (
    AppState,
    OperationInProgress,
    edit_svg,
    optimize_prompt,
    revert_to_version,
    save_version,
    send_message,
)
from config import load_config
from credentials import credential_store_for
from svg_service import SvgService, split_data_uri

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_FORMATS = {"PNG": "image/png", "JPEG": "image/jpeg"}


def validate_image(image_data):
    """Accept only PNG or JPEG data URIs whose bytes match the declared type."""
    header = image_data.split(",", 1)[0]
    if not (header.startswith("data:image/png") or header.startswith("data:image/jpeg")):
        raise ValueError("Only PNG or JPEG images are supported")
    mime_type, raw_bytes = split_data_uri(image_data)
    try:
        img = Image.open(io.BytesIO(raw_bytes))
    except UnidentifiedImageError:
        raise ValueError("Invalid image data") from None
    if ALLOWED_IMAGE_FORMATS.get(img.format) != mime_type:
        raise ValueError("Only PNG or JPEG images are supported")


def mask_key(key):
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


def create_app(config=None, service=None):
    config = config or load_config()
    credentials = credential_store_for(config)
    state = AppState(config, credentials)
    service = service or SvgService(credentials, config)

    app = Flask(__name__)
    app.extensions["svg_chat"] = state

    def busy():
        return jsonify({"error": str(OperationInProgress()), "state": state.to_dict()}), 409

    @app.route("/")
    def index():
        return HTML_PAGE

    @app.route("/api/state")
    def get_state():
        return jsonify(state.to_dict())

    @app.route("/api/chat", methods=["POST"])
    def chat():
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400
        message = data.get("message") or ""
        image = data.get("image") or None
        if not isinstance(message, str) or not (image is None or isinstance(image, str)):
            return jsonify({"error": "Message and image must be strings"}), 400

        if image:
            try:
                validate_image(image)
            except ValueError as e:
                return jsonify({"error": str(e)}), 400

        try:
            send_message(state, service, message, image)
        except OperationInProgress:
            return busy()
        return jsonify(state.to_dict())

    @app.route("/api/optimize-prompt", methods=["POST"])
    def chat_optimize_prompt():
        data = request.get_json(silent=True) or {}
        prompt = (data.get("prompt") or "").strip()

        if not prompt:
            return jsonify({"error": "Prompt cannot be empty"}), 400

        try:
            optimized = optimize_prompt(state, service, prompt)
        except OperationInProgress:
            return busy()
        return jsonify({"optimized_prompt": optimized, "state": state.to_dict()})

    @app.route("/api/svg", methods=["PUT"])
    def update_svg():
        data = request.get_json(silent=True) or {}
        code = data.get("code")
        if not isinstance(code, str):
            return jsonify({"error": "SVG code must be a string"}), 400
        edit_svg(state, code)
        return jsonify(state.to_dict())

    @app.route("/api/svg/download")
    def download_svg():
        svg_io = io.BytesIO(state.svg_code.encode("utf-8"))
        return send_file(
            svg_io,
            as_attachment=True,
            download_name=f"icon-{int(time.time() * 1000)}.svg",
            mimetype="image/svg+xml",
        )

    @app.route("/api/history", methods=["POST"])
    def history_save():
        if state.history is None:
            return jsonify({"error": "Version history is disabled"}), 404
        save_version(state)
        return jsonify(state.to_dict())

    @app.route("/api/history/<int:entry_id>/revert", methods=["POST"])
    def history_revert(entry_id):
        if state.history is None:
            return jsonify({"error": "Version history is disabled"}), 404
        try:
            revert_to_version(state, entry_id)
        except KeyError:
            return jsonify({"error": f"Unknown version: {entry_id}"}), 404
        return jsonify(state.to_dict())

    @app.route("/api/settings/api-key", methods=["GET"])
    def api_key_status():
        key = credentials.get()
        return jsonify({
            "credential_source": config.credential_source,
            "has_api_key": bool(key),
            "masked": mask_key(key),
        })

    @app.route("/api/settings/api-key", methods=["PUT", "DELETE"])
    def api_key_update():
        if config.credential_source == "env":
            return jsonify({"error": "The API key is managed through the environment"}), 409

        if request.method == "DELETE":
            credentials.clear()
        else:
            data = request.get_json(silent=True) or {}
            value = data.get("api_key") or ""
            if not isinstance(value, str):
                return jsonify({"error": "API key must be a string"}), 400
            credentials.set(value)
        return api_key_status()

    return app


HTML_PAGE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>AI SVG Icon Generator</title>
<style>
  *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    background: #0f0f0f;
    color: #e0e0e0;
    height: 100vh;
    display: flex;
    flex-direction: column;
    overflow: hidden;
  }

  header {
    padding: 14px 24px;
    border-bottom: 1px solid #1e1e1e;
    display: flex;
    align-items: center;
    gap: 10px;
  }
  header h1 { font-size: 1rem; font-weight: 600; color: #fff; }
  header .spacer { flex: 1; }

  .error-banner {
    display: none;
    padding: 10px 24px;
    background: #1a1111;
    color: #fca5a5;
    border-bottom: 1px solid #ef4444;
    font-size: 0.85rem;
  }
  .error-banner.visible { display: block; }

  .split-layout { display: flex; flex: 1; min-height: 0; }

  .panel { display: flex; flex-direction: column; min-height: 0; overflow: hidden; }
  .panel.left { width: 38%; border-right: 1px solid #1e1e1e; }
  .panel.right { flex: 1; }

  .panel-header {
    padding: 12px 20px;
    border-bottom: 1px solid #1e1e1e;
    font-size: 0.9rem;
    font-weight: 600;
    color: #fff;
    display: flex;
    align-items: center;
    gap: 8px;
  }

  .messages { flex: 1; overflow-y: auto; padding: 16px 20px; display: flex; flex-direction: column; gap: 12px; }
  .message { max-width: 85%; padding: 10px 14px; border-radius: 10px; white-space: pre-wrap; word-break: break-word; font-size: 0.88rem; line-height: 1.5; }
  .message.user { align-self: flex-end; background: #8b5cf6; color: #fff; }
  .message.ai { align-self: flex-start; background: #1a1a1a; border: 1px solid #2a2a2a; }
  .message.pending { color: #888; font-style: italic; }
  .message img { display: block; margin-top: 8px; max-height: 140px; border-radius: 6px; }

  .composer { border-top: 1px solid #1e1e1e; padding: 12px 20px; display: flex; flex-direction: column; gap: 8px; }
  .attachment { display: none; font-size: 0.78rem; color: #aaa; align-items: center; gap: 8px; }
  .attachment.visible { display: flex; }
  .composer-row { display: flex; gap: 8px; align-items: flex-end; }

  textarea {
    width: 100%;
    background: #1a1a1a;
    color: #e0e0e0;
    border: 1px solid #2a2a2a;
    border-radius: 10px;
    padding: 10px 12px;
    font-size: 0.88rem;
    font-family: inherit;
    resize: vertical;
    outline: none;
    transition: border-color 0.2s;
    line-height: 1.5;
  }
  textarea:focus { border-color: #8b5cf6; }
  textarea::placeholder { color: #555; }

  input[type=password] {
    width: 100%;
    background: #1a1a1a;
    color: #e0e0e0;
    border: 1px solid #2a2a2a;
    border-radius: 8px;
    padding: 8px 12px;
    outline: none;
  }
  input[type=password]:focus { border-color: #8b5cf6; }

  button {
    background: #8b5cf6;
    color: #fff;
    border: none;
    border-radius: 8px;
    padding: 8px 16px;
    font-size: 0.82rem;
    font-weight: 500;
    cursor: pointer;
    transition: background 0.2s, opacity 0.2s;
    white-space: nowrap;
  }
  button:hover { background: #7c3aed; }
  button:disabled { opacity: 0.5; cursor: not-allowed; }
  button.secondary { background: #232323; color: #aaa; border: 1px solid #333; }
  button.secondary:hover { background: #2e2e2e; color: #e0e0e0; }

  .history { height: 35%; border-top: 1px solid #1e1e1e; display: flex; flex-direction: column; min-height: 0; }
  .history.hidden { display: none; }
  .history ul { list-style: none; overflow-y: auto; padding: 8px 20px; display: flex; flex-direction: column; gap: 6px; }
  .history li { display: flex; align-items: center; gap: 10px; padding: 6px 10px; background: #1a1a1a; border: 1px solid #2a2a2a; border-radius: 8px; font-size: 0.75rem; }
  .history li .time { color: #888; font-variant-numeric: tabular-nums; }
  .history li code { flex: 1; color: #a78bfa; overflow: hidden; text-overflow: ellipsis; white-space: nowrap; }
  .history .empty { color: #555; font-size: 0.8rem; padding: 12px 20px; }

  .editor-actions { display: flex; gap: 6px; margin-left: auto; }
  .editor-body { flex: 1; display: flex; flex-direction: column; gap: 12px; padding: 16px 20px; min-height: 0; }
  .svg-preview {
    flex: 1;
    display: flex;
    justify-content: center;
    align-items: center;
    padding: 24px;
    background: #f5f5f5;
    border-radius: 10px;
    min-height: 0;
  }
  .svg-preview svg { max-width: 100%; max-height: 100%; width: 60%; height: auto; }
  #svgCode {
    flex: 1;
    font-family: 'SF Mono', 'Fira Code', 'Cascadia Code', monospace;
    font-size: 0.75rem;
    color: #a78bfa;
    background: #111;
    resize: none;
  }

  .modal-overlay { display: none; position: fixed; inset: 0; background: rgba(0,0,0,0.6); align-items: center; justify-content: center; z-index: 1000; }
  .modal-overlay.visible { display: flex; }
  .modal { background: #141414; border: 1px solid #333; border-radius: 12px; width: 420px; max-width: 92vw; padding: 20px; display: flex; flex-direction: column; gap: 14px; }
  .modal h2 { font-size: 1rem; color: #fff; }
  .modal p { font-size: 0.75rem; color: #888; }
  .modal a { color: #a78bfa; }
  .modal .row { display: flex; gap: 8px; justify-content: flex-end; }
</style>
</head>
<body>

<header>
  <h1>AI SVG Icon Generator</h1>
  <div class="spacer"></div>
  <button id="settingsBtn" class="secondary" onclick="openSettings()">Settings</button>
</header>

<div id="errorBanner" class="error-banner"></div>

<div class="split-layout">

  <!-- ── LEFT: Conversation + History ── -->
  <div class="panel left">
    <div class="panel-header">Conversation</div>
    <div id="messages" class="messages"></div>
    <div class="composer">
      <div id="attachment" class="attachment">
        <span id="attachmentName"></span>
        <button class="secondary" onclick="removeImage()">Remove</button>
      </div>
      <div class="composer-row">
        <button class="secondary" title="Attach PNG or JPEG" onclick="document.getElementById('fileInput').click()">Image</button>
        <input id="fileInput" type="file" accept="image/png, image/jpeg" style="display:none">
        <textarea id="chatInput" rows="2" placeholder="Type your message..."></textarea>
      </div>
      <div class="composer-row" style="justify-content:flex-end">
        <button id="optimizePromptBtn" class="secondary" onclick="optimizeCurrentPrompt()">Optimize prompt</button>
        <button id="sendBtn" onclick="sendMessage()">Send</button>
      </div>
    </div>
    <div id="history" class="history">
      <div class="panel-header">Version History</div>
      <ul id="historyList"></ul>
    </div>
  </div>

  <!-- ── RIGHT: Editor + Preview ── -->
  <div class="panel right">
    <div class="panel-header">
      SVG
      <div class="editor-actions">
        <button id="saveVersionBtn" class="secondary" onclick="saveVersion()">Save version</button>
        <button id="copyBtn" class="secondary" onclick="copySvg()">Copy</button>
        <button onclick="window.location='/api/svg/download'">Download</button>
      </div>
    </div>
    <div class="editor-body">
      <div id="preview" class="svg-preview"></div>
      <textarea id="svgCode" spellcheck="false"></textarea>
    </div>
  </div>

</div>

<div id="settingsModal" class="modal-overlay" onclick="if (event.target === this) closeSettings()">
  <div class="modal">
    <h2>Settings</h2>
    <label for="apiKeyInput" style="font-size:0.82rem">Gemini API Key</label>
    <input id="apiKeyInput" type="password" placeholder="Enter your Gemini API key">
    <p id="apiKeyStatus"></p>
    <p>Get your API key from <a href="https://aistudio.google.com/app/apikey" target="_blank" rel="noopener noreferrer">Google AI Studio</a></p>
    <div class="row">
      <button class="secondary" onclick="clearApiKey()">Clear API Key</button>
      <div style="flex:1"></div>
      <button class="secondary" onclick="closeSettings()">Cancel</button>
      <button onclick="saveApiKey()">Save</button>
    </div>
  </div>
</div>

<script>
  const messagesEl = document.getElementById('messages');
  const chatInputEl = document.getElementById('chatInput');
  const fileInputEl = document.getElementById('fileInput');
  const attachmentEl = document.getElementById('attachment');
  const attachmentNameEl = document.getElementById('attachmentName');
  const historyEl = document.getElementById('history');
  const historyListEl = document.getElementById('historyList');
  const previewEl = document.getElementById('preview');
  const svgCodeEl = document.getElementById('svgCode');
  const errorBannerEl = document.getElementById('errorBanner');
  const settingsModalEl = document.getElementById('settingsModal');
  const settingsBtnEl = document.getElementById('settingsBtn');
  const apiKeyInputEl = document.getElementById('apiKeyInput');
  const apiKeyStatusEl = document.getElementById('apiKeyStatus');

  let state = null;
  let image = null;
  let loading = false;
  let editTimer = null;

  // ── API call helper ──
  async function callApi(url, method, body) {
    const opts = { method, headers: { 'Content-Type': 'application/json' } };
    if (body !== undefined) opts.body = JSON.stringify(body);
    const res = await fetch(url, opts);
    const data = await res.json();
    if (!res.ok || data.error) {
      if (data.state) render(data.state);
      throw new Error(data.error || 'HTTP ' + res.status);
    }
    return data;
  }

  function setLoading(on) {
    loading = on;
    ['sendBtn', 'optimizePromptBtn', 'saveVersionBtn'].forEach(id => {
      document.getElementById(id).disabled = on;
    });
  }

  function showError(text) {
    errorBannerEl.textContent = text ? 'Error: ' + text : '';
    errorBannerEl.classList.toggle('visible', !!text);
  }

  function appendMessage(role, text, img, pending) {
    const div = document.createElement('div');
    div.className = 'message ' + role + (pending ? ' pending' : '');
    div.textContent = text;
    if (img) {
      const el = document.createElement('img');
      el.src = img;
      el.alt = 'User upload';
      div.appendChild(el);
    }
    messagesEl.appendChild(div);
    messagesEl.scrollTop = messagesEl.scrollHeight;
  }

  function renderPreview(code) {
    previewEl.innerHTML = code;
  }

  function render(next) {
    state = next;
    messagesEl.innerHTML = '';
    state.messages.forEach(m => appendMessage(m.role, m.text, m.image, false));

    if (document.activeElement !== svgCodeEl) svgCodeEl.value = state.svg_code;
    renderPreview(state.svg_code);
    showError(state.error);

    historyEl.classList.toggle('hidden', state.history === null);
    document.getElementById('saveVersionBtn').style.display = state.history === null ? 'none' : '';
    historyListEl.innerHTML = '';
    if (state.history !== null) {
      if (!state.history.length) {
        historyListEl.innerHTML = '<li class="empty">No versions saved yet.</li>';
      }
      state.history.forEach(entry => {
        const li = document.createElement('li');
        const time = document.createElement('span');
        time.className = 'time';
        time.textContent = entry.timestamp;
        const code = document.createElement('code');
        code.textContent = entry.code.substring(0, 40).replace(/\n/g, ' ') + '...';
        const btn = document.createElement('button');
        btn.className = 'secondary';
        btn.textContent = 'Revert';
        btn.title = 'Revert to this version';
        btn.addEventListener('click', () => revert(entry.id));
        li.append(time, code, btn);
        historyListEl.appendChild(li);
      });
    }

    settingsBtnEl.style.display = state.settings.credential_source === 'env' ? 'none' : '';
    if (state.error_kind === 'missing_credential' && state.settings.credential_source !== 'env') {
      openSettings();
    }
  }

  async function refresh() {
    render(await callApi('/api/state', 'GET'));
  }

  // ── Chat ──
  chatInputEl.addEventListener('keydown', e => {
    if (e.key === 'Enter' && !e.shiftKey) { e.preventDefault(); sendMessage(); }
  });

  fileInputEl.addEventListener('change', () => {
    const file = fileInputEl.files[0];
    if (!file || (file.type !== 'image/png' && file.type !== 'image/jpeg')) return;
    const reader = new FileReader();
    reader.onloadend = () => {
      image = reader.result;
      attachmentNameEl.textContent = file.name;
      attachmentEl.classList.add('visible');
    };
    reader.readAsDataURL(file);
  });

  function removeImage() {
    image = null;
    fileInputEl.value = '';
    attachmentEl.classList.remove('visible');
  }

  async function sendMessage() {
    const message = chatInputEl.value;
    if (loading || (!message.trim() && !image)) return;

    const sent = image;
    appendMessage('user', message, sent, false);
    appendMessage('ai', 'Thinking...', null, true);
    chatInputEl.value = '';
    removeImage();
    setLoading(true);

    try {
      render(await callApi('/api/chat', 'POST', { message, image: sent }));
    } catch (e) {
      showError(e.message);
      await refresh();
    } finally {
      setLoading(false);
    }
  }

  async function optimizeCurrentPrompt() {
    const prompt = chatInputEl.value.trim();
    if (loading || !prompt) return;
    setLoading(true);
    try {
      const data = await callApi('/api/optimize-prompt', 'POST', { prompt });
      render(data.state);
      if (data.optimized_prompt) chatInputEl.value = data.optimized_prompt;
    } catch (e) {
      showError(e.message);
    } finally {
      setLoading(false);
    }
  }

  // ── Editor ──
  svgCodeEl.addEventListener('input', () => {
    renderPreview(svgCodeEl.value);
    clearTimeout(editTimer);
    editTimer = setTimeout(async () => {
      try { state = await callApi('/api/svg', 'PUT', { code: svgCodeEl.value }); }
      catch (e) { showError(e.message); }
    }, 300);
  });

  function copySvg() {
    const btn = document.getElementById('copyBtn');
    navigator.clipboard.writeText(svgCodeEl.value).then(() => {
      btn.textContent = 'Copied!';
      setTimeout(() => btn.textContent = 'Copy', 1500);
    });
  }

  // ── History ──
  async function saveVersion() {
    try {
      await callApi('/api/svg', 'PUT', { code: svgCodeEl.value });
      render(await callApi('/api/history', 'POST'));
    } catch (e) { showError(e.message); }
  }

  async function revert(id) {
    try { render(await callApi('/api/history/' + id + '/revert', 'POST')); }
    catch (e) { showError(e.message); }
  }

  // ── Settings ──
  async function openSettings() {
    settingsModalEl.classList.add('visible');
    const data = await callApi('/api/settings/api-key', 'GET');
    apiKeyInputEl.value = '';
    apiKeyStatusEl.textContent = data.has_api_key ? 'Current key: ' + data.masked : 'No API key configured.';
  }

  function closeSettings() {
    settingsModalEl.classList.remove('visible');
  }

  async function saveApiKey() {
    try {
      await callApi('/api/settings/api-key', 'PUT', { api_key: apiKeyInputEl.value });
      closeSettings();
      await refresh();
    } catch (e) { apiKeyStatusEl.textContent = e.message; }
  }

  async function clearApiKey() {
    try {
      await callApi('/api/settings/api-key', 'DELETE');
      apiKeyInputEl.value = '';
      apiKeyStatusEl.textContent = 'No API key configured.';
      await refresh();
    } catch (e) { apiKeyStatusEl.textContent = e.message; }
  }

  refresh();
</script>
</body>
</html>
"""

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_app().run(debug=True, port=5001, threaded=True)
