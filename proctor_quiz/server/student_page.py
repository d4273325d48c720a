"""Student page served at ``/``.

The page renders the quiz and forwards browser signals (visibility, clipboard,
context menu, fullscreen, online/offline) to the API. Clipboard and context
menu actions are cancelled in the browser while a session is being taken.
"""

STUDENT_PAGE_HTML = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>ProctorQuiz</title>
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <style>
      :root { font-family: 'Inter', system-ui, sans-serif; background: #0b1120; color: #f5f7ff; }
      body { margin: 0; padding: 1.5rem; display: flex; flex-direction: column; gap: 1rem; }
      .card { background: #111a30; border-radius: 0.75rem; padding: 1.5rem; box-shadow: 0 0.5rem 1.5rem rgba(0, 0, 0, 0.4); }
      .hidden { display: none; }
      .primary-button { border: none; border-radius: 0.75rem; padding: 0.85rem 1.5rem; font-size: 1rem; background: #1f9aa5; color: #fff; cursor: pointer; }
      .primary-button:disabled { opacity: 0.6; cursor: not-allowed; }
      .options-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(180px, 1fr)); gap: 0.75rem; margin: 1rem 0; }
      .option-button { border: 2px solid transparent; border-radius: 0.75rem; padding: 1rem; font-size: 1rem; background: #1f9aa5; color: #fff; cursor: pointer; }
      .option-button.selected { border-color: #facc15; }
      .nav-row { display: flex; justify-content: space-between; gap: 0.75rem; }
      .timers { display: flex; gap: 1.5rem; color: #facc15; }
      .notice { border-radius: 0.5rem; padding: 0.75rem 1rem; margin-bottom: 0.5rem; background: #3b2f0b; }
      .notice.blocking, .notice.termination { background: #5b1220; }
      label { display: block; margin-top: 0.5rem; }
      input, select { font-size: 1rem; padding: 0.4rem; border-radius: 0.4rem; border: none; }
    </style>
    <script>
      window.MathJax = { tex: { inlineMath: [['$','$']], displayMath: [['$$','$$']] }, svg: { fontCache: 'global' } };
    </script>
    <script defer src="https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"></script>
  </head>
  <body>
    <section class="card" id="create-card">
      <h1>ProctorQuiz</h1>
      <label>Topic <input id="topic" value="" /></label>
      <label>Difficulty
        <select id="difficulty"><option>easy</option><option selected>medium</option><option>hard</option></select>
      </label>
      <label>Questions <input id="count" type="number" min="1" max="50" value="10" /></label>
      <label>Time limit (minutes, optional) <input id="time-limit" type="number" min="1" /></label>
      <p><button id="create-button" class="primary-button">Start Quiz</button></p>
      <p id="create-status"></p>
    </section>
    <section class="card hidden" id="notices-card"><div id="notices"></div></section>
    <section class="card hidden" id="quiz-card">
      <div class="timers"><span id="overall-timer"></span><span id="question-timer"></span><span id="flags"></span></div>
      <h2 id="question-number"></h2>
      <div id="question-container"></div>
      <div id="options-container" class="options-grid"></div>
      <div class="nav-row">
        <button id="prev-button" class="primary-button">Previous</button>
        <button id="next-button" class="primary-button">Next</button>
        <button id="submit-button" class="primary-button hidden">Submit Quiz</button>
      </div>
    </section>
    <section class="card hidden" id="result-card">
      <h2>Quiz finished</h2>
      <p id="result-text"></p>
    </section>
    <script>
      let sessionId = new URLSearchParams(window.location.search).get('session');
      let view = null;
      let pollHandle = null;

      function show(id, visible) {
        document.getElementById(id).classList.toggle('hidden', !visible);
      }

      function isActive() {
        return view !== null && view.is_open && !view.completed_at;
      }

      async function api(path, method = 'GET', body = undefined) {
        const response = await fetch(path, {
          method,
          headers: { 'Content-Type': 'application/json' },
          body: body === undefined ? undefined : JSON.stringify(body)
        });
        const payload = await response.json().catch(() => ({}));
        if (!response.ok) {
          throw new Error(payload.detail || 'Request failed');
        }
        return payload;
      }

      async function signal(kind) {
        if (!sessionId) return;
        try {
          await api(`/sessions/${sessionId}/signals`, 'POST', { kind });
        } catch (error) {
          console.error('Signal failed', error);
        }
      }

      function formatSeconds(total) {
        const minutes = String(Math.floor(total / 60)).padStart(2, '0');
        const seconds = String(total % 60).padStart(2, '0');
        return `${minutes}:${seconds}`;
      }

      function renderNotices(notices) {
        const container = document.getElementById('notices');
        container.innerHTML = '';
        notices.forEach(notice => {
          const el = document.createElement('div');
          el.className = `notice ${notice.level}`;
          el.innerHTML = `<strong>${notice.title}</strong><p>${notice.message}</p>`;
          if (notice.action) {
            const button = document.createElement('button');
            button.className = 'primary-button';
            button.textContent = notice.action === 'retry' ? 'Retry' : 'Reload';
            button.onclick = () => notice.action === 'retry' ? openSession() : window.location.reload();
            el.appendChild(button);
          }
          if (notice.dismissible) {
            const button = document.createElement('button');
            button.className = 'primary-button';
            button.textContent = 'Dismiss';
            button.onclick = async () => {
              await api(`/sessions/${sessionId}/notices/${notice.id}/dismiss`, 'POST');
              refresh();
            };
            el.appendChild(button);
          }
          container.appendChild(el);
        });
        show('notices-card', notices.length > 0);
      }

      function render() {
        renderNotices(view.notices);
        if (view.completed_at) {
          show('quiz-card', false);
          show('result-card', true);
          document.getElementById('result-text').textContent =
            `Score ${view.score}/${view.question_count} (${view.termination_reason}).`;
          if (pollHandle) clearInterval(pollHandle);
          return;
        }
        show('quiz-card', view.is_open);
        const question = view.current_question;
        document.getElementById('question-number').textContent =
          `Question ${view.current_question_index + 1} of ${view.question_count}`;
        document.getElementById('question-container').innerHTML = question.question_html;
        const options = document.getElementById('options-container');
        options.innerHTML = '';
        question.options.forEach((option, index) => {
          const button = document.createElement('button');
          button.className = 'option-button' + (option === question.user_answer ? ' selected' : '');
          button.innerHTML = question.options_html[index];
          button.onclick = () => answer(question.id, option);
          options.appendChild(button);
        });
        const last = view.current_question_index === view.question_count - 1;
        document.getElementById('prev-button').disabled = view.current_question_index === 0;
        show('next-button', !last);
        show('submit-button', last);
        document.getElementById('submit-button').disabled = !question.user_answer;
        const timers = view.timers;
        document.getElementById('overall-timer').textContent =
          timers.overall_remaining_seconds === null ? '' : `Quiz ${formatSeconds(timers.overall_remaining_seconds)}`;
        document.getElementById('question-timer').textContent =
          timers.question_remaining_seconds === null ? '' : `Question ${formatSeconds(timers.question_remaining_seconds)}`;
        document.getElementById('flags').textContent = `Warnings ${view.flag_count}/${view.flag_limit}`;
        if (window.MathJax && window.MathJax.typeset) window.MathJax.typeset();
      }

      async function refresh() {
        if (!sessionId) return;
        try {
          view = await api(`/sessions/${sessionId}`);
          render();
        } catch (error) {
          console.error('Refresh failed', error);
        }
      }

      async function openSession() {
        view = await api(`/sessions/${sessionId}/open`, 'POST');
        show('create-card', false);
        render();
        if (!pollHandle) pollHandle = setInterval(refresh, 1000);
        if (view.is_open && document.documentElement.requestFullscreen) {
          document.documentElement.requestFullscreen().catch(() => {});
        }
      }

      async function answer(questionId, value) {
        view = await api(`/sessions/${sessionId}/answer`, 'POST', { question_id: questionId, value });
        render();
      }

      async function navigate(action) {
        view = await api(`/sessions/${sessionId}/navigate`, 'POST', { action });
        render();
      }

      document.getElementById('prev-button').onclick = () => navigate('previous');
      document.getElementById('next-button').onclick = () => navigate('next');
      document.getElementById('submit-button').onclick = async () => {
        if (!confirm('Once submitted, you will not be able to change your answers. Submit now?')) return;
        view = await api(`/sessions/${sessionId}/submit`, 'POST');
        render();
      };

      document.getElementById('create-button').onclick = async () => {
        const status = document.getElementById('create-status');
        status.textContent = 'Preparing questions...';
        const timeLimit = parseInt(document.getElementById('time-limit').value, 10);
        try {
          const created = await api('/sessions', 'POST', {
            topic: document.getElementById('topic').value,
            difficulty: document.getElementById('difficulty').value,
            count: parseInt(document.getElementById('count').value, 10),
            time_limit_minutes: Number.isNaN(timeLimit) ? null : timeLimit
          });
          sessionId = created.id;
          history.replaceState(null, '', `/?session=${sessionId}`);
          status.textContent = '';
          await openSession();
        } catch (error) {
          status.textContent = error.message;
        }
      };

      document.addEventListener('visibilitychange', () => {
        if (isActive()) signal(document.hidden ? 'visibility_hidden' : 'visibility_visible');
      });
      ['copy', 'cut', 'paste'].forEach(kind => {
        document.addEventListener(kind, event => {
          if (!isActive()) return;
          event.preventDefault();
          signal(kind);
        });
      });
      document.addEventListener('contextmenu', event => {
        if (!isActive()) return;
        event.preventDefault();
        signal('context_menu');
      });
      document.addEventListener('fullscreenchange', () => {
        if (isActive()) signal(document.fullscreenElement ? 'fullscreen_enter' : 'fullscreen_exit');
      });
      window.addEventListener('online', () => api('/connectivity', 'POST', { online: true }).catch(() => {}));
      window.addEventListener('offline', () => api('/connectivity', 'POST', { online: false }).catch(() => {}));
      window.addEventListener('beforeunload', () => {
        if (sessionId) navigator.sendBeacon(`/sessions/${sessionId}/close`);
      });

      api('/connectivity', 'POST', { online: navigator.onLine }).catch(() => {});
      if (sessionId) openSession().catch(error => console.error(error));
    </script>
  </body>
</html>
"""
