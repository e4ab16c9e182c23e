#!/usr/bin/env python3
"""
GUI Application for Impression Rating

A Gradio-based interface for the two rating phases: data-quality assessment
(hardness and chain-of-thought quality) followed by blinded scoring of every
model's impression. Works both locally and on HuggingFace Spaces.
"""

import atexit
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

import gradio as gr

from rad_rater.blinding import blinded_slots, build_blinded_order, label_map, slot_label
from rad_rater.config import RaterSettings, configure_logging, load_settings
from rad_rater.errors import LoadError, SaveInProgressError, ValidationError
from rad_rater.persistence import AutosaveTimer
from rad_rater.rating_store import RatingStore
from rad_rater.response_models.answer import DataQualityAnswer, ModelScoreAnswer
from rad_rater.response_models.status import PhaseKind, SessionStatus


class CustomTheme(gr.themes.Soft):
    """Soft theme with a calmer primary color for long reading sessions."""

    def __init__(self):
        super().__init__(primary_hue="slate", secondary_hue="blue")


class CaseRaterGUI:
    """Main GUI application for rating cases."""

    def __init__(self, settings: RaterSettings, store: Optional[RatingStore] = None):
        """Initialize the GUI application."""
        self.settings = settings
        self.store = store or RatingStore(settings)
        self.autosave = AutosaveTimer(
            settings.storage.autosave_interval_seconds,
            self.store.persist_local,
        )

    @property
    def slot_count(self) -> int:
        return len(self.settings.models)

    def dataset_choices(self) -> List[Tuple[str, str]]:
        """(label, dataset key) pairs for the dataset selector."""
        return [
            (f"{phase.label}: {dataset.label}", dataset.key)
            for phase in self.settings.phases
            for dataset in phase.datasets
        ]

    def progress_text(self) -> str:
        if self.store.current_session is None:
            return ""
        summary = self.store.progress()
        return f"📊 Progress: {summary.describe()}"

    def _with_report(self, message: str) -> str:
        report = self.store.last_report
        if report is not None and not report.ok:
            return f"{message}\n⚠️ {report.describe()}"
        return message

    def login(self, user_id: str, meta: str = "", sample_size: Any = None) -> str:
        """Start or resume a rater's session."""
        try:
            size = int(sample_size) if sample_size not in (None, "") else None
            session = self.store.start_session(user_id, meta=meta or "", sample_size=size)
        except ValueError as e:
            return f"❌ Error: {e}"
        except LoadError as e:
            return f"❌ {e.describe()}"

        self.autosave.start()
        message = f"✓ Session ready for {session.user_id}\n{self.progress_text()}"
        if session.status == SessionStatus.ALL_COMPLETE:
            message = f"✅ All cases have been rated. You can export your results.\n{self.progress_text()}"
        return self._with_report(message)

    def render(self) -> Dict[str, Any]:
        """Display data for the current case (empty values before login)."""
        view: Dict[str, Any] = {
            "kind": None,
            "case_id": "",
            "header": "",
            "case": "",
            "ground_truth": "",
            "cot": "",
            "slots": [],
            "hardness": None,
            "quality": None,
            "scores": [None] * self.slot_count,
            "open_slot": None,
            "comment": "",
            "show_gt": False,
            "dataset": None,
            "progress": self.progress_text(),
        }
        if self.store.current_session is None:
            return view

        session = self.store.current_session
        phase = self.store.current_phase()
        scope = self.store.current_scope()
        case = self.store.current_case()
        if phase is None or scope is None or case is None:
            return view

        phase_spec = self.settings.phase_spec(phase.key)
        phase_label = phase_spec.label if phase_spec else phase.key
        answer = scope.answers.get(case.id)
        view.update({
            "kind": phase.kind,
            "case_id": case.id,
            "dataset": scope.key,
            "header": (
                f"### {phase_label}: {self.settings.dataset_label(scope.key)}\n"
                f"Case {scope.cursor + 1} of {scope.case_count}"
                + (" (rated)" if answer is not None else "")
            ),
            "case": f"**Indication:** {case.indication or '-'}\n\n**Findings:** {case.findings or '-'}",
            "ground_truth": f"**Reference impression:** {case.ground_truth or '-'}",
        })
        if answer is not None:
            view["comment"] = answer.comment
            view["show_gt"] = answer.show_gt

        if phase.kind == PhaseKind.DATA_QUALITY:
            view["cot"] = f"**Chain of thought:**\n\n{case.cot or '(none)'}"
            if answer is not None:
                view["hardness"] = answer.hardness
                view["quality"] = answer.quality
        else:
            order = build_blinded_order(session.user_id, scope.key, case.id, self.settings.model_ids)
            view["slots"] = [
                {"label": slot_label(i), "model_id": m, "text": case.output_for(m)}
                for i, m in enumerate(order)
            ]
            if answer is not None:
                view["scores"] = [answer.scores.get(m) for m in order]
                view["open_slot"] = label_map(order).get(answer.open_model or "")
        return view

    def _describe_validation(self, error: ValidationError, order: Sequence[str]) -> str:
        labels = label_map(order)
        fields = []
        for name in error.missing_fields:
            if name.startswith("scores."):
                model_id = name.split(".", 1)[1]
                fields.append(f"Output {labels.get(model_id, '?')}")
            else:
                fields.append(name)
        return "⚠️ Please complete: " + ", ".join(fields)

    def save(
        self,
        case_id: str,
        hardness: Optional[str],
        quality: Optional[str],
        scores: Sequence[Any],
        comment: str = "",
        show_gt: bool = False,
        open_slot: Optional[str] = None,
    ) -> str:
        """
        Save the rating for the displayed case and move on.

        `scores` are in display order; `open_slot` is the label of the output
        the rater expanded, if any.
        """
        if self.store.current_session is None:
            return "❌ Please log in first"
        phase = self.store.current_phase()
        scope = self.store.current_scope()
        if phase is None or scope is None:
            return "❌ No active dataset"

        order: List[str] = []
        if phase.kind == PhaseKind.DATA_QUALITY:
            answer = DataQualityAnswer(
                hardness=hardness or None,
                quality=quality or None,
                comment=(comment or "").strip(),
                show_gt=bool(show_gt),
            )
        else:
            order = build_blinded_order(
                self.store.current_session.user_id, scope.key, case_id, self.settings.model_ids
            )
            by_label = {label: m for label, m in blinded_slots(order)}
            answer = ModelScoreAnswer(
                scores={m: int(s) for m, s in zip(order, scores) if s not in (None, "")},
                comment=(comment or "").strip(),
                show_gt=bool(show_gt),
                open_model=by_label.get(open_slot) if open_slot else None,
            )

        try:
            outcome = self.store.record_answer(case_id, answer)
        except ValidationError as e:
            return self._describe_validation(e, order)
        except SaveInProgressError:
            return "⏳ Still saving the previous rating, please wait"

        message = "✅ Saved"
        for t in outcome.transitions:
            if t.to_status == SessionStatus.PHASE_2_ACTIVE:
                message = "🎉 Data quality phase complete. Model evaluation is now unlocked."
            elif t.to_status == SessionStatus.ALL_COMPLETE:
                message = "✅ All cases have been rated. You can export your results."
        return self._with_report(f"{message}\n{self.progress_text()}")

    def prev(self) -> str:
        if self.store.current_session is None:
            return "❌ Please log in first"
        outcome = self.store.prev()
        return outcome.message or self.progress_text()

    def select_dataset(self, dataset_key: str) -> str:
        if self.store.current_session is None:
            return "❌ Please log in first"
        phase = next(
            (p for p in self.settings.phases if any(d.key == dataset_key for d in p.datasets)),
            None,
        )
        if phase is None:
            return f"❌ Unknown dataset: {dataset_key}"
        try:
            self.store.select_scope(phase.key, dataset_key)
        except ValueError as e:
            return f"🔒 {e}"
        return self.progress_text()

    def export(self) -> Tuple[str, Optional[str]]:
        if self.store.current_session is None:
            return "❌ Please log in first", None
        path = self.store.export()
        return f"📁 Exported to {path}", str(path)

    def reset(self) -> str:
        if self.store.current_session is None:
            return "❌ Please log in first"
        self.autosave.stop()
        user_id = self.store.current_session.user_id
        report = self.store.reset()
        if not report.ok:
            return f"⚠️ Reset {user_id}: {report.describe()}"
        return f"🗑️ Deleted all saved ratings for {user_id}"

    def shutdown(self) -> None:
        """Stop autosaving and write the session to the local cache."""
        self.autosave.stop()
        self.store.persist_local()


def create_interface(settings: Optional[RaterSettings] = None):
    """Create the Gradio interface."""
    settings = settings or load_settings()
    configure_logging(settings.logging.level)
    app = CaseRaterGUI(settings)
    atexit.register(app.shutdown)

    scoring = settings.scoring
    with gr.Blocks(title=settings.app.title) as demo:
        gr.Markdown(f"# 🩻 {settings.app.title}")
        gr.Markdown("Rate case data quality first, then score each blinded model impression.")

        with gr.Row():
            with gr.Column(scale=2):
                user_input = gr.Textbox(label="User ID", placeholder="Enter your rater id")
                meta_input = gr.Textbox(label="About you (optional)", placeholder="Role, institution, ...")
                sample_input = gr.Dropdown(
                    label="Cases per dataset",
                    choices=settings.sampling.allowed_sample_sizes,
                    value=settings.sampling.default_sample_size,
                )
                login_btn = gr.Button("Start / Resume", variant="primary")
            status_output = gr.Textbox(label="Status", interactive=False, lines=3)

        with gr.Row():
            dataset_select = gr.Dropdown(label="Dataset", choices=app.dataset_choices(), value=None)
            progress_display = gr.Markdown("")

        header_display = gr.Markdown("")
        case_display = gr.Markdown("")
        show_gt_input = gr.Checkbox(label="Show reference impression", value=False)
        gt_display = gr.Markdown("", visible=False)

        with gr.Group(visible=False) as quality_group:
            cot_display = gr.Markdown("")
            hardness_input = gr.Radio(label="Case hardness", choices=scoring.hardness_levels)
            quality_input = gr.Radio(label="Chain-of-thought quality", choices=scoring.quality_levels)

        slot_displays = []
        slot_scores = []
        with gr.Group(visible=False) as model_group:
            for i in range(app.slot_count):
                with gr.Row():
                    with gr.Column(scale=4):
                        slot_displays.append(gr.Markdown(f"**Output {slot_label(i)}**"))
                    with gr.Column(scale=1):
                        slot_scores.append(gr.Radio(
                            label=f"Score {slot_label(i)}",
                            choices=scoring.score_values,
                        ))
            open_input = gr.Radio(
                label="Output read in full (optional)",
                choices=[slot_label(i) for i in range(app.slot_count)],
            )

        comment_input = gr.Textbox(label="Comment (optional)", lines=3)

        with gr.Row():
            prev_btn = gr.Button("⏮️ Previous", variant="secondary")
            save_btn = gr.Button("💾 Save & Next", variant="primary")
            export_btn = gr.Button("📁 Export", variant="secondary")
            reset_btn = gr.Button("🗑️ Reset", variant="stop")

        export_file = gr.File(label="Results file", interactive=False)
        case_id_state = gr.State("")

        view_outputs = [
            header_display, case_display, gt_display, show_gt_input,
            quality_group, cot_display, hardness_input, quality_input,
            model_group, *slot_displays, *slot_scores, open_input,
            comment_input, dataset_select, progress_display, case_id_state,
        ]

        def view_values():
            view = app.render()
            slots = view["slots"]
            texts = [
                f"**Output {s['label']}**\n\n{s['text'] or '(no output)'}" for s in slots
            ] + [""] * (app.slot_count - len(slots))
            return [
                view["header"],
                view["case"],
                gr.update(value=view["ground_truth"], visible=view["show_gt"]),
                view["show_gt"],
                gr.update(visible=view["kind"] == PhaseKind.DATA_QUALITY),
                view["cot"],
                view["hardness"],
                view["quality"],
                gr.update(visible=view["kind"] == PhaseKind.MODEL_EVAL),
                *texts,
                *view["scores"],
                view["open_slot"],
                view["comment"],
                view["dataset"],
                view["progress"],
                view["case_id"],
            ]

        def on_login(user_id, meta, sample_size):
            return [app.login(user_id, meta, sample_size), *view_values()]

        def on_save(case_id, hardness, quality, show_gt, comment, open_slot, *scores):
            return [app.save(case_id, hardness, quality, scores, comment, show_gt, open_slot), *view_values()]

        def on_prev():
            return [app.prev(), *view_values()]

        def on_select(dataset_key):
            if not dataset_key:
                return [gr.update(), *view_values()]
            return [app.select_dataset(dataset_key), *view_values()]

        def on_export():
            return app.export()

        def on_reset():
            return [app.reset(), *view_values()]

        def on_toggle_gt(show):
            return gr.update(visible=bool(show))

        login_btn.click(
            fn=on_login,
            inputs=[user_input, meta_input, sample_input],
            outputs=[status_output, *view_outputs],
        )
        save_btn.click(
            fn=on_save,
            inputs=[
                case_id_state, hardness_input, quality_input, show_gt_input,
                comment_input, open_input, *slot_scores,
            ],
            outputs=[status_output, *view_outputs],
        )
        prev_btn.click(fn=on_prev, outputs=[status_output, *view_outputs])
        dataset_select.input(fn=on_select, inputs=[dataset_select], outputs=[status_output, *view_outputs])
        export_btn.click(fn=on_export, outputs=[status_output, export_file])
        reset_btn.click(fn=on_reset, outputs=[status_output, *view_outputs])
        show_gt_input.change(fn=on_toggle_gt, inputs=[show_gt_input], outputs=[gt_display])

    return demo


if __name__ == "__main__":
    # Determine if running locally or on HuggingFace Spaces
    is_spaces = os.getenv("SPACE_ID") is not None
    settings = load_settings()
    demo = create_interface(settings)
    if is_spaces:
        demo.launch(server_name="0.0.0.0", server_port=7860, share=False, theme=CustomTheme())
    else:
        demo.launch(
            server_name=settings.app.server_name,
            server_port=settings.app.server_port,
            share=False,
            theme=CustomTheme(),
        )
