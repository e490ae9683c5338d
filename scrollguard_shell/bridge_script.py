"""JavaScript side of the page bridge.

The script is injected into every page at DocumentReady. It never decides
anything on its own: it reports page state as ``console.log`` lines prefixed
with ``MESSAGE_PREFIX`` and executes the commands Python sends through
``window.__scrollguard__.command(...)``.

Element handles are short string ids. ``root`` is the document scrolling
element, ``body`` and ``title`` are fixed; everything else is numbered on
first sight.
"""
from __future__ import annotations

import json
from typing import Any, Mapping

MESSAGE_PREFIX = "__scrollguard__"
BRIDGE_GLOBAL = "__scrollguard__"
SCRIPT_NAME = "scrollguard-bridge"

OVERLAY_ELEMENT_ID = "scrollguard-overlay"


def command_script(command: Mapping[str, Any]) -> str:
    """Wrap one command for ``QWebEnginePage.runJavaScript``."""
    payload = json.dumps(dict(command), separators=(",", ":"))
    return f"window.{BRIDGE_GLOBAL} && window.{BRIDGE_GLOBAL}.command({payload});"


OVERLAY_CSS = """
#scrollguard-overlay {
  position: fixed; inset: 0; z-index: 2147483647;
  display: flex; align-items: center; justify-content: center;
  background: rgba(0, 0, 0, 0.85); color: #fff;
  font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
}
#scrollguard-overlay[hidden] { display: none; }
#scrollguard-overlay .sg-card { max-width: 28rem; padding: 2rem; text-align: center; }
#scrollguard-overlay .sg-message { font-size: 1.6rem; font-weight: 700; margin: 0 0 0.75rem; }
#scrollguard-overlay .sg-sub { font-size: 1rem; opacity: 0.8; margin: 0 0 1.5rem; }
#scrollguard-overlay button {
  margin: 0 0.4rem; padding: 0.6rem 1.2rem; border-radius: 999px;
  border: 1px solid #fff; font-size: 0.95rem; cursor: pointer;
}
#scrollguard-overlay .sg-continue { background: transparent; color: #fff; }
#scrollguard-overlay .sg-close { background: #fff; color: #000; }
"""

BRIDGE_SCRIPT = r"""
(function () {
  "use strict";
  if (window.__scrollguard__) { return; }

  var PREFIX = "__scrollguard__";
  var ids = new WeakMap();
  var elements = new Map();
  var nextId = 1;
  var watched = {};
  var observers = {};
  var listening = {};
  var pending = {};
  var overlay = null;

  function post(message) {
    try { console.log(PREFIX + JSON.stringify(message)); } catch (e) { /* page replaced console */ }
  }

  function scrollingRoot() { return document.scrollingElement || document.documentElement; }

  function idFor(el) {
    if (!el) { return null; }
    if (el === scrollingRoot()) { return "root"; }
    if (el === document.body) { return "body"; }
    if (el === document.querySelector("title")) { return "title"; }
    var known = ids.get(el);
    if (known) { return known; }
    var fresh = "n" + (nextId++);
    ids.set(el, fresh);
    elements.set(fresh, el);
    return fresh;
  }

  function lookup(id) {
    if (id === "root") { return scrollingRoot(); }
    if (id === "body") { return document.body; }
    if (id === "title") { return document.querySelector("title"); }
    var el = elements.get(id);
    if (el && !el.isConnected) { elements.delete(id); return null; }
    return el || null;
  }

  function describe(el, nodes) {
    var id = idFor(el);
    if (!id || nodes[id]) { return id; }
    var parent = el.parentElement;
    var style = window.getComputedStyle(el);
    nodes[id] = {
      parent: parent ? idFor(parent) : null,
      overflowY: style ? style.overflowY : "visible",
      scrollHeight: el.scrollHeight,
      clientHeight: el.clientHeight,
      scrollTop: el.scrollTop,
      inline: { overflow: el.style ? el.style.overflow : "" }
    };
    if (parent) { describe(parent, nodes); }
    return id;
  }

  function state() {
    var nodes = {};
    var selectors = {};
    describe(scrollingRoot(), nodes);
    if (document.body) { describe(document.body, nodes); }
    var title = document.querySelector("title");
    if (title) { describe(title, nodes); }
    Object.keys(watched).forEach(function (selector) {
      var match = null;
      try { match = document.querySelector(selector); } catch (e) { match = null; }
      selectors[selector] = match ? describe(match, nodes) : null;
    });
    elements.forEach(function (el, id) {
      if (el.isConnected) { describe(el, nodes); }
    });
    return {
      url: String(window.location.href),
      viewportHeight: window.innerHeight,
      hasBody: !!document.body,
      hasTitle: !!title,
      nodes: nodes,
      selectors: selectors
    };
  }

  function emit(event, target, extra) {
    var message = { kind: "event", event: event, target: target, state: state() };
    if (extra) { Object.keys(extra).forEach(function (key) { message[key] = extra[key]; }); }
    post(message);
  }

  function coalesce(key, fn) {
    if (pending[key]) { return; }
    pending[key] = true;
    window.requestAnimationFrame(function () {
      delete pending[key];
      fn();
    });
  }

  function onViewportScroll() { coalesce("scroll:viewport", function () { emit("scroll", "viewport"); }); }

  window.addEventListener("scroll", onViewportScroll, { passive: true });
  window.addEventListener("popstate", function () { emit("popstate", "viewport"); });

  function listen(id) {
    if (listening[id]) { return; }
    var el = lookup(id);
    if (!el) { return; }
    var handler = function () { coalesce("scroll:" + id, function () { emit("scroll", id); }); };
    el.addEventListener("scroll", handler, { passive: true });
    listening[id] = { el: el, handler: handler };
  }

  function unlisten(id) {
    var entry = listening[id];
    if (!entry) { return; }
    entry.el.removeEventListener("scroll", entry.handler);
    delete listening[id];
  }

  function observe(id, subtree, characterData) {
    if (observers[id]) { return; }
    var el = lookup(id);
    if (!el) { return; }
    var observer = new MutationObserver(function () {
      coalesce("mutation:" + id, function () { emit("mutation", id); });
    });
    observer.observe(el, { childList: true, subtree: !!subtree, characterData: !!characterData });
    observers[id] = observer;
  }

  function unobserve(id) {
    var observer = observers[id];
    if (!observer) { return; }
    observer.disconnect();
    delete observers[id];
  }

  function setStyle(id, prop, value) {
    var el = lookup(id);
    if (!el) { return; }
    if (value) { el.style.setProperty(prop, value); } else { el.style.removeProperty(prop); }
  }

  function ensureOverlay() {
    if (overlay && overlay.isConnected) { return overlay; }
    var style = document.createElement("style");
    style.textContent = __OVERLAY_CSS__;
    var root = document.createElement("div");
    root.id = "__OVERLAY_ID__";
    root.hidden = true;
    root.appendChild(style);
    var card = document.createElement("div");
    card.className = "sg-card";
    var message = document.createElement("p");
    message.className = "sg-message";
    var sub = document.createElement("p");
    sub.className = "sg-sub";
    var cont = document.createElement("button");
    cont.className = "sg-continue";
    cont.addEventListener("click", function () { emit("overlay", "overlay", { action: "continue" }); });
    var close = document.createElement("button");
    close.className = "sg-close";
    close.addEventListener("click", function () { emit("overlay", "overlay", { action: "close" }); });
    card.appendChild(message);
    card.appendChild(sub);
    card.appendChild(cont);
    card.appendChild(close);
    root.appendChild(card);
    (document.body || document.documentElement).appendChild(root);
    overlay = root;
    return root;
  }

  function renderOverlay(copy) {
    var root = ensureOverlay();
    root.querySelector(".sg-message").textContent = copy.message || "";
    root.querySelector(".sg-sub").textContent = copy.subMessage || "";
    root.querySelector(".sg-continue").textContent = copy.continueLabel || "";
    root.querySelector(".sg-close").textContent = copy.closeLabel || "";
  }

  function overlayCommand(command) {
    switch (command.op) {
      case "mount": ensureOverlay(); break;
      case "show": renderOverlay(command.copy || {}); overlay.hidden = false; break;
      case "render": renderOverlay(command.copy || {}); break;
      case "hide": if (overlay) { overlay.hidden = true; } break;
      case "destroy": if (overlay) { overlay.remove(); overlay = null; } break;
    }
  }

  window.__scrollguard__ = {
    command: function (command) {
      switch (command.cmd) {
        case "snapshot": post({ kind: "snapshot", state: state() }); break;
        case "watch": (command.selectors || []).forEach(function (s) { watched[s] = true; }); post({ kind: "snapshot", state: state() }); break;
        case "listen": listen(command.target); break;
        case "unlisten": unlisten(command.target); break;
        case "observe": observe(command.target, command.subtree, command.characterData); break;
        case "unobserve": unobserve(command.target); break;
        case "setStyle": setStyle(command.target, command.prop, command.value); break;
        case "overlay": overlayCommand(command); break;
      }
    }
  };

  post({ kind: "snapshot", state: state() });
})();
""".replace("__OVERLAY_CSS__", json.dumps(OVERLAY_CSS)).replace("__OVERLAY_ID__", OVERLAY_ELEMENT_ID)
