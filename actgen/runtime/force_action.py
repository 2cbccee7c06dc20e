"""
強制操作 — 標準 API で操作できない要素に対し DOM イベントを直接発行するフォールバック

Shadow DOM の内側など、通常のロケータで到達できない要素を対象にする。
セレクタ文字列は Python 側で SelectorSpec に変換し、dict としてページ内スクリプトに渡す。
ページ内スクリプトは light DOM と open な shadow root を幅優先で走査して要素を探す。

対応する操作:
  - click    : pointerdown → mousedown → mouseup → click
  - dblclick : click 系列を2回 + dblclick
  - input    : value 代入 + input / change イベント
  - select   : value 一致 → 表示テキスト一致 → （ペイロードなしなら）先頭の option

各候補の失敗は {ok: false, reason} で返り、全候補が失敗した時点で ForceActionError を送出する。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from .selectors import SelectorParseError, describe_selector, parse_selector

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)


class ForceActionError(Exception):
    """全てのセレクタ候補で強制操作に失敗した場合のエラー。"""


@dataclass
class ForceActionResult:
    """1候補分の試行結果。"""

    ok: bool
    reason: str = ""


# ---------------------------------------------------------------------------
# ページ内スクリプト
# ---------------------------------------------------------------------------

_FORCE_ACTION_SCRIPT = r"""
({ spec, type, payload }) => {
  const IMPLICIT_ROLES = {
    button: 'button,input[type=button],input[type=submit],input[type=reset]',
    link: 'a[href]',
    textbox: 'input:not([type]),input[type=text],input[type=email],input[type=password],input[type=search],input[type=tel],input[type=url],textarea',
    checkbox: 'input[type=checkbox]',
    radio: 'input[type=radio]',
    combobox: 'select',
    heading: 'h1,h2,h3,h4,h5,h6',
    img: 'img[alt]',
  };

  const queryAll = (root, selector) => {
    const found = [];
    const queue = [root];
    for (let head = 0; head < queue.length; head++) {
      const node = queue[head];
      if (node.nodeType === Node.ELEMENT_NODE) {
        if (node.matches(selector)) found.push(node);
        if (node.shadowRoot) queue.push(node.shadowRoot);
      }
      for (const child of node.children || []) queue.push(child);
    }
    return found;
  };

  const textOf = (el) => (el.innerText || el.textContent || '').trim();

  const byId = (el, id) => {
    const root = el.getRootNode();
    return (root.getElementById && root.getElementById(id)) || document.getElementById(id);
  };

  const accessibleName = (el) => {
    const label = el.getAttribute('aria-label');
    if (label && label.trim()) return label.trim();
    const labelledBy = el.getAttribute('aria-labelledby');
    if (labelledBy) {
      const text = labelledBy.split(/\s+/)
        .map((id) => byId(el, id))
        .filter(Boolean)
        .map(textOf)
        .join(' ')
        .trim();
      if (text) return text;
    }
    const alt = el.getAttribute('alt');
    if (alt && alt.trim()) return alt.trim();
    const title = el.getAttribute('title');
    if (title && title.trim()) return title.trim();
    return textOf(el);
  };

  // shadow root の境界を越えて祖先をたどる contains
  const deepContains = (outer, inner) => {
    for (let n = inner; n; n = n.parentNode || n.host) {
      if (n === outer) return true;
    }
    return false;
  };

  const NON_TEXT_TAGS = new Set(['HTML', 'HEAD', 'SCRIPT', 'STYLE', 'NOSCRIPT', 'TEMPLATE', 'TITLE', 'META', 'LINK']);

  const textCandidates = () =>
    queryAll(document, '*').filter((el) => !NON_TEXT_TAGS.has(el.tagName));

  const pickByText = (elements, text, exact) => {
    const exactMatches = elements.filter((el) => textOf(el) === text);
    if (exactMatches.length) {
      // 同じテキストを持つ祖先より内側の要素を選ぶ
      return exactMatches.find((el) => !exactMatches.some((o) => o !== el && deepContains(el, o)))
        || exactMatches[0];
    }
    if (exact) return null;
    const partial = elements.filter((el) => textOf(el).includes(text));
    if (!partial.length) return null;
    // 部分一致は最も内側の要素のうちテキストが最短のものを選ぶ
    const innermost = partial.filter((el) => !partial.some((o) => o !== el && deepContains(el, o)));
    return innermost.reduce((a, b) => (textOf(b).length < textOf(a).length ? b : a));
  };

  const attrEquals = (name, value) =>
    queryAll(document, `[${name}]`).find((el) => el.getAttribute(name) === value) || null;

  const findLabelled = (text) => {
    const labels = queryAll(document, 'label');
    const label = pickByText(labels, text, false);
    if (!label) return null;
    const forId = label.getAttribute('for');
    if (forId) return byId(label, forId);
    return label.querySelector('input,textarea,select,button') || null;
  };

  const find = (s) => {
    switch (s.kind) {
      case 'css':
        return queryAll(document, s.css)[0] || null;
      case 'chain': {
        for (const parent of queryAll(document, s.parent)) {
          const child = queryAll(parent, s.child)[0];
          if (child) return child;
        }
        return null;
      }
      case 'test_id':
        return attrEquals('data-testid', s.test_id);
      case 'role': {
        const selector = IMPLICIT_ROLES[s.role]
          ? `[role="${s.role}"],${IMPLICIT_ROLES[s.role]}`
          : `[role="${s.role}"]`;
        const elements = queryAll(document, selector);
        if (s.name == null) return elements[0] || null;
        const exact = elements.find((el) => accessibleName(el) === s.name);
        if (exact || s.exact) return exact || null;
        return elements.find((el) => accessibleName(el).includes(s.name)) || null;
      }
      case 'text':
        return pickByText(textCandidates(), s.text, !!s.exact);
      case 'label':
        return findLabelled(s.label);
      case 'placeholder':
        return queryAll(document, 'input,textarea')
          .find((el) => el.getAttribute('placeholder') === s.placeholder) || null;
      case 'alt':
        return attrEquals('alt', s.alt);
      case 'title':
        return attrEquals('title', s.title);
      default:
        return null;
    }
  };

  const fire = (el, name, Ctor) =>
    el.dispatchEvent(new Ctor(name, { bubbles: true, cancelable: true, composed: true }));

  const clickSequence = (el) => {
    fire(el, 'pointerdown', window.PointerEvent || MouseEvent);
    fire(el, 'mousedown', MouseEvent);
    fire(el, 'pointerup', window.PointerEvent || MouseEvent);
    fire(el, 'mouseup', MouseEvent);
    el.click();
  };

  const el = find(spec);
  if (!el) return { ok: false, reason: 'not_found' };
  el.scrollIntoView({ block: 'center', inline: 'center' });

  switch (type) {
    case 'click':
      clickSequence(el);
      return { ok: true, reason: '' };
    case 'double_click':
    case 'dblclick':
      clickSequence(el);
      clickSequence(el);
      fire(el, 'dblclick', MouseEvent);
      return { ok: true, reason: '' };
    case 'input': {
      if (!('value' in el)) return { ok: false, reason: 'not_input' };
      el.focus();
      el.value = payload == null ? '' : String(payload);
      fire(el, 'input', Event);
      fire(el, 'change', Event);
      return { ok: true, reason: '' };
    }
    case 'select': {
      if (el.tagName !== 'SELECT') return { ok: false, reason: 'not_select' };
      const options = Array.from(el.options);
      let option = null;
      if (payload == null) {
        option = options[0] || null;
      } else {
        const wanted = String(payload);
        option = options.find((o) => o.value === wanted)
          || options.find((o) => o.text.trim() === wanted)
          || null;
      }
      if (!option) return { ok: false, reason: 'option_not_found' };
      el.value = option.value;
      fire(el, 'input', Event);
      fire(el, 'change', Event);
      return { ok: true, reason: '' };
    }
    default:
      return { ok: false, reason: 'unsupported_action' };
  }
}
"""


# ---------------------------------------------------------------------------
# 公開 API
# ---------------------------------------------------------------------------

async def _try_selector(
    page: Page, text: str, action: str, payload: Optional[Any],
) -> ForceActionResult:
    try:
        spec = parse_selector(text)
    except SelectorParseError as exc:
        return ForceActionResult(ok=False, reason=f"unsupported_selector: {exc}")

    try:
        raw = await page.evaluate(
            _FORCE_ACTION_SCRIPT,
            {"spec": spec.model_dump(), "type": action, "payload": payload},
        )
    except PlaywrightError as exc:
        return ForceActionResult(ok=False, reason=f"evaluate_failed: {exc}")

    if not isinstance(raw, dict):
        return ForceActionResult(ok=False, reason="invalid_result")
    result = ForceActionResult(ok=bool(raw.get("ok")), reason=str(raw.get("reason") or ""))
    logger.debug("強制操作 %s %s → %s", action, describe_selector(spec), result)
    return result


async def force_action(
    page: Page,
    selectors: Sequence[str],
    action: str,
    payload: Optional[Any] = None,
) -> None:
    """セレクタ候補を順に試し、最初に成功した要素へ DOM イベントを発行する。

    Args:
        page: Playwright の Page オブジェクト
        selectors: ロケータ式の候補（優先順）
        action: "click" / "double_click" / "input" / "select"
        payload: input のテキスト、select の値（None なら先頭の option）

    Raises:
        ForceActionError: 全候補で失敗した場合
    """
    failures: list[str] = []
    for text in selectors:
        result = await _try_selector(page, text, action, payload)
        if result.ok:
            logger.info("強制操作で %s を実行しました: %s", action, text)
            return
        failures.append(f"{text}: {result.reason}")

    logger.warning("強制操作に失敗しました: %s", action)
    raise ForceActionError(
        f"強制操作 '{action}' に失敗しました [" + "; ".join(failures) + "]"
    )
