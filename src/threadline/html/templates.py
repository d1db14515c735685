"""Page skeletons, static styles and browser scripts."""

from __future__ import annotations

import json
from dataclasses import dataclass
from html import escape

from threadline.services.polling import ERROR_MULTIPLIER, NO_CHANGE_MULTIPLIER

SITE_NAME = "threadline"
DESCRIPTION_LIMIT = 160

CSS_STYLES = """
:root { --bg: #fff; --fg: #1a1a1a; --muted: #6b6b6b; --rule: #e6e6e6; --accent: #0a66ff; }
@media (prefers-color-scheme: dark) {
  :root { --bg: #141414; --fg: #ececec; --muted: #9a9a9a; --rule: #2a2a2a; --accent: #5b9bff; }
}
* { box-sizing: border-box; }
body { margin: 0 auto; max-width: 42rem; padding: 1.5rem 1rem 4rem; background: var(--bg);
  color: var(--fg); font: 1.125rem/1.65 Georgia, "Times New Roman", serif; }
a { color: var(--accent); }
header.author { display: flex; align-items: center; gap: .75rem; margin-bottom: 2rem; }
.avatar, .avatar-placeholder { width: 3rem; height: 3rem; border-radius: 50%; }
.avatar-placeholder { display: grid; place-items: center; background: var(--rule); font-weight: bold; }
.author-handle { color: var(--muted); font-size: .9rem; }
.refresh-btn { margin-left: auto; border: 1px solid var(--rule); background: none; color: var(--fg);
  border-radius: 1rem; padding: .25rem .75rem; cursor: pointer; }
.refresh-btn.spinning { opacity: .5; }
.post { padding: 0 0 1.25rem; margin-bottom: 1.25rem; border-bottom: 1px solid var(--rule); }
.post-text { white-space: pre-wrap; overflow-wrap: anywhere; }
.post-meta { display: block; margin-top: .5rem; color: var(--muted); font-size: .85rem; text-decoration: none; }
.embed-images { display: grid; gap: .25rem; margin-top: .75rem; }
.embed-images.double, .embed-images.grid { grid-template-columns: 1fr 1fr; }
.embed-image { width: 100%; height: auto; border-radius: .5rem; object-fit: cover; }
.embed-video video { width: 100%; height: 100%; border-radius: .5rem; }
.embed-external, .embed-record { display: block; margin-top: .75rem; padding: .75rem;
  border: 1px solid var(--rule); border-radius: .5rem; color: inherit; text-decoration: none; }
.external-thumb { width: 100%; border-radius: .25rem; }
.external-title, .record-author-name { font-weight: bold; }
.external-description, .record-meta, .record-author-handle { color: var(--muted); font-size: .9rem; }
.record-header { display: flex; align-items: center; gap: .5rem; }
.record-header .avatar, .record-header .avatar-placeholder { width: 1.5rem; height: 1.5rem; }
.loading-indicator { color: var(--muted); text-align: center; }
.stream-error, .error-page { color: #b00020; }
.landing { text-align: center; padding-top: 4rem; }
.landing-form { display: flex; gap: .5rem; }
.landing-input { flex: 1; padding: .5rem; font: inherit; }
footer { margin-top: 2rem; color: var(--muted); font-size: .9rem; }
"""

LOCAL_TIME_SCRIPT = """
(function() {
    function formatLocalTime(date) {
        return date.toLocaleDateString(undefined, {
            month: 'short', day: 'numeric', year: 'numeric'
        }) + ' at ' + date.toLocaleTimeString(undefined, {
            hour: '2-digit', minute: '2-digit'
        });
    }
    function convertTimestamps() {
        var times = document.querySelectorAll('time[datetime]');
        for (var i = 0; i < times.length; i++) {
            var el = times[i];
            if (el.getAttribute('data-localized')) continue;
            var date = new Date(el.getAttribute('datetime'));
            if (!isNaN(date.getTime())) {
                el.textContent = formatLocalTime(date);
                el.setAttribute('data-localized', '1');
            }
        }
    }
    window.convertTimestamps = convertTimestamps;
    convertTimestamps();
})();
"""

# Browser half of the polling policy in threadline.services.polling.
POLL_SCRIPT = """
(function() {
    var cfg = %(config)s;
    var interval = cfg.initialInterval;
    var noUpdateSince = Date.now();
    var lastPollTime = Date.now();
    var timerId = null;
    var stopped = false;
    var inFlight = false;
    var refreshBtn = document.getElementById('refresh-btn');

    function updatesUrl() {
        return '/api/thread/updates?handle=' + encodeURIComponent(cfg.handle) +
               '&post_id=' + encodeURIComponent(cfg.postId) +
               '&since_cid=' + encodeURIComponent(cfg.lastCid);
    }

    function cancelTimer() {
        if (timerId) { clearTimeout(timerId); timerId = null; }
    }

    function schedule(delay) {
        cancelTimer();
        if (stopped || document.hidden) return;
        timerId = setTimeout(onTimer, delay === undefined ? interval : delay);
    }

    function insertPosts(html) {
        var thread = document.querySelector('.thread');
        var temp = document.createElement('div');
        temp.innerHTML = html;
        while (temp.firstChild) { thread.appendChild(temp.firstChild); }
        if (window.convertTimestamps) window.convertTimestamps();
    }

    function finish() {
        inFlight = false;
        if (refreshBtn) { refreshBtn.classList.remove('spinning'); refreshBtn.disabled = false; }
    }

    function poll() {
        inFlight = true;
        lastPollTime = Date.now();
        fetch(updatesUrl())
            .then(function(r) {
                if (r.status === 204) {
                    if (r.headers.get('X-Thread-Stale') === 'true') {
                        stopped = true;
                    } else {
                        interval = Math.min(interval * %(no_change)s, cfg.maxInterval);
                    }
                    return null;
                }
                if (!r.ok) throw new Error('Poll failed: ' + r.status);
                cfg.lastCid = r.headers.get('X-Last-CID') || cfg.lastCid;
                return r.text();
            })
            .then(function(html) {
                if (html) {
                    insertPosts(html);
                    noUpdateSince = Date.now();
                    interval = cfg.initialInterval;
                }
                finish();
                schedule();
            })
            .catch(function(e) {
                console.error('Poll error:', e);
                interval = Math.min(interval * %(on_error)s, cfg.maxInterval);
                finish();
                schedule();
            });
    }

    function onTimer() {
        timerId = null;
        if (stopped || inFlight || document.hidden) return;
        if (Date.now() - noUpdateSince > cfg.disableAfter) { stopped = true; return; }
        poll();
    }

    if (refreshBtn) {
        refreshBtn.addEventListener('click', function() {
            if (inFlight) return;
            if (stopped) { stopped = false; noUpdateSince = Date.now(); }
            refreshBtn.disabled = true;
            refreshBtn.classList.add('spinning');
            cancelTimer();
            poll();
        });
    }

    document.addEventListener('visibilitychange', function() {
        if (document.hidden) { cancelTimer(); return; }
        if (stopped || inFlight) return;
        var elapsed = Date.now() - lastPollTime;
        if (elapsed >= interval) { poll(); } else { schedule(interval - elapsed); }
    });

    schedule();
})();
"""


@dataclass(frozen=True)
class PollingConfig:
    """Configuration rendered into the browser polling script (seconds)."""

    handle: str
    post_id: str
    last_cid: str
    initial_interval: float
    max_interval: float
    disable_after: float


@dataclass(frozen=True)
class SocialMeta:
    """Open Graph and Twitter card fields."""

    title: str | None = None
    description: str | None = None
    url: str | None = None
    image_url: str | None = None
    og_type: str | None = None


def _script_json(value: object) -> str:
    # Keeps "</script>" and friends from terminating the inline script.
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def render_poll_script(config: PollingConfig) -> str:
    payload = {
        "handle": config.handle,
        "postId": config.post_id,
        "lastCid": config.last_cid,
        "initialInterval": int(config.initial_interval * 1000),
        "maxInterval": int(config.max_interval * 1000),
        "disableAfter": int(config.disable_after * 1000),
    }
    return POLL_SCRIPT % {
        "config": _script_json(payload),
        "no_change": NO_CHANGE_MULTIPLIER,
        "on_error": ERROR_MULTIPLIER,
    }


def truncate_for_description(text: str, max_len: int = DESCRIPTION_LIMIT) -> str:
    """Shorten ``text`` to about ``max_len`` characters at a word boundary."""
    if len(text) <= max_len:
        return text
    truncated = text[:max_len]
    break_point = truncated.rfind(" ")
    if break_point <= 0:
        break_point = max_len
    return f"{text[:break_point]}..."


def render_social_meta(social: SocialMeta) -> str:
    tags: list[str] = []
    description = (
        escape(truncate_for_description(social.description)) if social.description else None
    )
    title = escape(social.title) if social.title else None
    image = escape(social.image_url) if social.image_url else None

    if description:
        tags.append(f'<meta name="description" content="{description}">')
    if social.og_type:
        tags.append(f'<meta property="og:type" content="{escape(social.og_type)}">')
    if title:
        tags.append(f'<meta property="og:title" content="{title}">')
    if description:
        tags.append(f'<meta property="og:description" content="{description}">')
    if social.url:
        tags.append(f'<meta property="og:url" content="{escape(social.url)}">')
    tags.append(f'<meta property="og:site_name" content="{SITE_NAME}">')
    if image:
        tags.append(f'<meta property="og:image" content="{image}">')
    tags.append('<meta name="twitter:card" content="summary">')
    if title:
        tags.append(f'<meta name="twitter:title" content="{title}">')
    if description:
        tags.append(f'<meta name="twitter:description" content="{description}">')
    if image:
        tags.append(f'<meta name="twitter:image" content="{image}">')
    return "\n    ".join(tags)


def render_avatar_html(avatar_url: str | None, author_name: str) -> str:
    """An avatar image, or a placeholder with the author's initial."""
    if avatar_url:
        return (
            f'<img class="avatar" src="{escape(avatar_url)}" '
            f'alt="{escape(author_name)}\'s avatar">'
        )
    initial = (author_name[:1] or "?").upper()
    return (
        f'<div class="avatar-placeholder" role="img" '
        f'aria-label="{escape(author_name)}\'s avatar">{escape(initial)}</div>'
    )


def document_head(
    title: str,
    *,
    lang: str | None = None,
    favicon_url: str | None = None,
    social: SocialMeta | None = None,
) -> str:
    """Open the document up to and including ``<body>``."""
    favicon = (
        f'<link rel="icon" type="image/png" href="{escape(favicon_url)}">' if favicon_url else ""
    )
    social_meta = render_social_meta(social) if social else ""
    return f"""<!DOCTYPE html>
<html lang="{escape(lang or 'en')}">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{escape(title)}</title>
    {social_meta}
    {favicon}
    <style>{CSS_STYLES}</style>
</head>
<body>
"""


def base_page(
    title: str,
    content: str,
    *,
    lang: str | None = None,
    favicon_url: str | None = None,
    social: SocialMeta | None = None,
    scripts: str = "",
) -> str:
    head = document_head(title, lang=lang, favicon_url=favicon_url, social=social)
    return f"""{head}{content}
<script>{LOCAL_TIME_SCRIPT}{scripts}</script>
</body>
</html>"""


def landing_page() -> str:
    content = """<main class="landing">
    <h1 class="landing-title">threadline</h1>
    <form class="landing-form" action="/" method="get">
        <input type="url" name="url" class="landing-input" placeholder="https://bsky.app/profile/.../post/..." required>
        <button type="submit" class="landing-button">Go</button>
    </form>
    <p class="landing-description">Paste a Bluesky post URL to read the whole thread as a single page.</p>
    <p class="landing-tip">Or replace <strong>bsky.app</strong> with this site's address in any Bluesky post URL.</p>
</main>"""
    social = SocialMeta(
        title="threadline - Bluesky thread reader",
        description="Read Bluesky threads as single, clean pages. No login required.",
        og_type="website",
    )
    return base_page("threadline - Bluesky thread reader", content, social=social)


def error_page(status_code: int, title: str, message: str) -> str:
    content = f"""<main class="error-page">
    <h1>{status_code}</h1>
    <p>{escape(title)}: {escape(message)}</p>
    <a href="/">Try another thread</a>
</main>"""
    return base_page(f"{status_code} - {title}", content)


def author_header(
    author_name: str, handle: str, avatar_url: str | None, profile_url: str, *, refresh: bool
) -> str:
    refresh_button = (
        '<button id="refresh-btn" class="refresh-btn" type="button" '
        'aria-label="Check for new posts">Refresh</button>'
        if refresh
        else ""
    )
    return f"""<header class="author">
    <a href="{escape(profile_url)}" target="_blank" rel="noopener">{render_avatar_html(avatar_url, author_name)}</a>
    <div>
        <div class="author-name">{escape(author_name)}</div>
        <div class="author-handle">@{escape(handle)}</div>
    </div>
    {refresh_button}
</header>
"""


def loading_indicator() -> str:
    return '<div class="loading-indicator" id="loading-indicator">Loading more...</div>\n'


def post_before_indicator(post_html: str) -> str:
    """Append a post and move the loading indicator back below it."""
    return (
        f"{post_html}<script>(function(){{var l=document.getElementById('loading-indicator');"
        "if(l)l.parentNode.appendChild(l);})();</script>\n"
    )


def document_footer(original_post_url: str, polling: PollingConfig | None = None) -> str:
    poll_script = render_poll_script(polling) if polling else ""
    return f"""</main>
<footer>
    <a href="{escape(original_post_url)}" target="_blank" rel="noopener">View original on Bluesky</a>
</footer>
<script>
(function(){{var l=document.getElementById('loading-indicator');if(l)l.remove();}})();
{LOCAL_TIME_SCRIPT}{poll_script}
</script>
</body>
</html>"""


def stream_error(message: str) -> str:
    """Close a half-sent thread page after a failure."""
    return f"""<div class="stream-error">
    <p>Error loading thread: {escape(message)}</p>
</div>
</main>
<footer>
    <a href="/">Try another thread</a>
</footer>
<script>
(function(){{var l=document.getElementById('loading-indicator');if(l)l.remove();}})();
</script>
</body>
</html>"""
