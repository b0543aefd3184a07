"""
Composition Graph Builder - Assembles the ffmpeg filtergraph from optional layers.

Each layer declares the media inputs it needs and the filter nodes it adds on top
of the current video label. The builder folds over whichever layers are present,
so every combination (banner or not, captions or not, zero/one/two narration
tracks) yields a well-formed graph without branching string assembly.

Node inputs use plain link labels ("base") or input references ("@background:v")
that resolve to stream specifiers ("0:v") once input order is fixed.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from storyreel.config import TitleBoxStyle
from storyreel.services.media_tools import escape_drawtext, escape_filter_path, escape_filter_value
from storyreel.services.title_layout import TitleLayout


# Fixed color grade applied to every background
BASE_COLOR_GRADE = "eq=brightness=0.05:contrast=1.1:saturation=1.1"

BANNER_TOP_FILES = ["redditbannertop_rounded.png", "redditbannertop.png"]
BANNER_BOTTOM_FILES = ["redditbannerbottom_rounded.png", "redditbannerbottom.png"]


@dataclass
class MediaInput:
    """An ffmpeg input: options placed before -i, then the path or lavfi source."""

    name: str
    path: str
    options: list[str] = field(default_factory=list)


@dataclass
class FilterNode:
    """One filterchain: input links, filter expression, output links."""

    inputs: list[str]
    filter: str
    outputs: list[str]


@dataclass
class LayerFragment:
    """What a layer contributes to the graph."""

    inputs: list[MediaInput] = field(default_factory=list)
    nodes: list[FilterNode] = field(default_factory=list)
    video_out: Optional[str] = None
    audio_out: Optional[str] = None


@dataclass
class CompositionGraph:
    """A complete, renderer-agnostic description of one output video."""

    inputs: list[MediaInput]
    nodes: list[FilterNode]
    video_label: str
    audio_label: Optional[str]
    duration_sec: float
    layers: list[str] = field(default_factory=list)

    @property
    def has_audio(self) -> bool:
        return self.audio_label is not None

    def input_index(self, name: str) -> int:
        for i, media in enumerate(self.inputs):
            if media.name == name:
                return i
        raise CompositionError(f"Unknown input: {name}")

    def resolve_link(self, link: str) -> str:
        """Turn "@name:v" into "<index>:v"; plain labels are returned unchanged."""
        if not link.startswith("@"):
            return link
        name, _, stream = link[1:].partition(":")
        index = self.input_index(name)
        return f"{index}:{stream}" if stream else str(index)

    def filter_complex(self) -> str:
        """Serialize the nodes into a -filter_complex string."""
        chains = []
        for node in self.nodes:
            ins = "".join(f"[{self.resolve_link(link)}]" for link in node.inputs)
            outs = "".join(f"[{link}]" for link in node.outputs)
            chains.append(f"{ins}{node.filter}{outs}")
        return ";".join(chains)


class Layer(ABC):
    """A composable part of the output video."""

    name: str = "layer"

    @abstractmethod
    def fragment(self, video_in: Optional[str]) -> LayerFragment:
        """Build this layer's inputs and nodes on top of the current video label."""


class BackgroundLayer(Layer):
    """Base video scaled and cropped to the canonical frame with a fixed grade."""

    name = "background"

    def __init__(self, path: str, loop: bool = False, width: int = 1080, height: int = 1920, fps: int = 30):
        self.path = path
        self.loop = loop
        self.width = width
        self.height = height
        self.fps = fps

    def fragment(self, video_in: Optional[str]) -> LayerFragment:
        options = ["-stream_loop", "-1"] if self.loop else []
        video_filter = (
            f"scale={self.width}:{self.height}:force_original_aspect_ratio=increase,"
            f"crop={self.width}:{self.height},setsar=1,fps={self.fps},{BASE_COLOR_GRADE}"
        )
        return LayerFragment(
            inputs=[MediaInput("background", self.path, options)],
            nodes=[FilterNode(["@background:v"], video_filter, ["base"])],
            video_out="base",
        )


class BannerLayer(Layer):
    """
    Intro banner: top image, white title box, bottom image stacked vertically and
    centered over the video while the opening narration plays.
    """

    name = "banner"

    def __init__(
        self,
        layout: TitleLayout,
        visible_until_sec: float,
        top_image: Optional[str] = None,
        bottom_image: Optional[str] = None,
        subreddit_label: str = "",
        author_label: str = "",
        font_file: Optional[str] = None,
        style: Optional[TitleBoxStyle] = None,
    ):
        self.layout = layout
        self.visible_until_sec = visible_until_sec
        self.top_image = top_image
        self.bottom_image = bottom_image
        self.subreddit_label = subreddit_label
        self.author_label = author_label
        self.font_file = font_file
        self.style = style or TitleBoxStyle()

    @classmethod
    def from_assets(
        cls,
        title: str,
        layout: TitleLayout,
        visible_until_sec: float,
        top_image: Optional[str],
        bottom_image: Optional[str],
        **kwargs,
    ) -> Optional["BannerLayer"]:
        """A banner needs title text, a visible window, and at least one banner image."""
        if not (title or "").strip() or visible_until_sec <= 0:
            return None
        if not top_image and not bottom_image:
            return None
        return cls(layout, visible_until_sec, top_image, bottom_image, **kwargs)

    def _drawtext(self, text: str, font_size: int, x: str, y: str, extra: str = "") -> str:
        font = f"fontfile='{escape_filter_value(self.font_file)}':" if self.font_file else ""
        return (
            f"drawtext={font}text='{escape_drawtext(text)}':fontsize={font_size}"
            f":fontcolor=black:x={x}:y={y}{extra}"
        )

    def fragment(self, video_in: Optional[str]) -> LayerFragment:
        style = self.style
        window = f"{self.visible_until_sec:.3f}"
        still_options = ["-loop", "1", "-t", window]
        fragment = LayerFragment()
        stack: list[str] = []

        if self.top_image:
            label_shadow = ":shadowx=2:shadowy=2:shadowcolor=white@0.6"
            draws = [f"scale={style.box_width}:-1"]
            if self.subreddit_label:
                draws.append(self._drawtext(
                    self.subreddit_label, style.subreddit_font_size, str(style.label_x), "36", label_shadow
                ))
            if self.author_label:
                draws.append(self._drawtext(
                    f"@{self.author_label}", style.author_font_size, str(style.label_x),
                    f"(h-75-{style.author_font_size})", label_shadow,
                ))
            fragment.inputs.append(MediaInput("banner_top", self.top_image, list(still_options)))
            fragment.nodes.append(FilterNode(["@banner_top:v"], ",".join(draws), ["banner_top"]))
            stack.append("banner_top")

        box = f"color=c=white:s={style.box_width}x{self.layout.box_height}:d={window}"
        line_draws = [
            self._drawtext(
                line, style.font_size, str(style.text_x),
                str(self.layout.padding_top + i * self.layout.line_height),
            )
            for i, line in enumerate(self.layout.lines)
            if line
        ]
        fragment.inputs.append(MediaInput("title_box", box, ["-f", "lavfi"]))
        fragment.nodes.append(FilterNode(["@title_box:v"], ",".join(line_draws) or "null", ["title_box"]))
        stack.append("title_box")

        if self.bottom_image:
            fragment.inputs.append(MediaInput("banner_bottom", self.bottom_image, list(still_options)))
            fragment.nodes.append(FilterNode(["@banner_bottom:v"], f"scale={style.box_width}:-1", ["banner_bottom"]))
            stack.append("banner_bottom")

        if len(stack) > 1:
            fragment.nodes.append(FilterNode(stack, f"vstack=inputs={len(stack)}", ["banner"]))
            banner = "banner"
        else:
            banner = stack[0]

        fragment.nodes.append(FilterNode(
            [video_in, banner],
            f"overlay=(main_w-w)/2:(main_h-h)/2:enable='between(t,0,{window})'",
            ["with_banner"],
        ))
        fragment.video_out = "with_banner"
        return fragment


class CaptionLayer(Layer):
    """Burns the word-level ASS track over the composed video."""

    name = "captions"

    def __init__(self, subtitle_path: str):
        self.subtitle_path = subtitle_path

    def fragment(self, video_in: Optional[str]) -> LayerFragment:
        return LayerFragment(
            nodes=[FilterNode([video_in], f"ass={escape_filter_path(self.subtitle_path)}", ["with_captions"])],
            video_out="with_captions",
        )


@dataclass
class AudioTrack:
    """A narration file and how much of it to keep."""

    name: str
    path: str
    duration_sec: float


class AudioLayer(Layer):
    """Narration tracks trimmed and normalized, then concatenated in order."""

    name = "audio"

    def __init__(self, tracks: list[AudioTrack], sample_rate: int = 44100):
        if not tracks:
            raise CompositionError("AudioLayer requires at least one track")
        self.tracks = tracks
        self.sample_rate = sample_rate

    @classmethod
    def from_tracks(cls, tracks: list[Optional[AudioTrack]], sample_rate: int = 44100) -> Optional["AudioLayer"]:
        present = [t for t in tracks if t is not None]
        return cls(present, sample_rate) if present else None

    @property
    def duration_sec(self) -> float:
        return sum(t.duration_sec for t in self.tracks)

    def fragment(self, video_in: Optional[str]) -> LayerFragment:
        fragment = LayerFragment()
        labels = []
        for i, track in enumerate(self.tracks):
            label = f"a{i}"
            fragment.inputs.append(MediaInput(track.name, track.path))
            fragment.nodes.append(FilterNode(
                [f"@{track.name}:a"],
                (
                    f"atrim=0:{track.duration_sec:.3f},"
                    f"aformat=sample_fmts=fltp:channel_layouts=stereo,"
                    f"aresample={self.sample_rate},asetpts=PTS-STARTPTS"
                ),
                [label],
            ))
            labels.append(label)

        if len(labels) > 1:
            fragment.nodes.append(FilterNode(labels, f"concat=n={len(labels)}:v=0:a=1", ["audio"]))
            fragment.audio_out = "audio"
        else:
            fragment.audio_out = labels[0]
        return fragment


def build_composition_graph(layers: list[Optional[Layer]], duration_sec: float) -> CompositionGraph:
    """
    Fold the present layers into one graph.

    None entries are skipped, so callers can pass optional layers directly. The
    first video layer must be a BackgroundLayer.
    """
    present = [layer for layer in layers if layer is not None]
    if not present or not isinstance(present[0], BackgroundLayer):
        raise CompositionError("Composition must start with a background layer")
    if duration_sec <= 0:
        raise CompositionError(f"Invalid output duration: {duration_sec}")

    inputs: list[MediaInput] = []
    nodes: list[FilterNode] = []
    video: Optional[str] = None
    audio: Optional[str] = None

    for layer in present:
        fragment = layer.fragment(video)
        inputs.extend(fragment.inputs)
        nodes.extend(fragment.nodes)
        video = fragment.video_out or video
        audio = fragment.audio_out or audio

    names = [media.name for media in inputs]
    if len(names) != len(set(names)):
        raise CompositionError(f"Duplicate input names: {names}")

    return CompositionGraph(
        inputs=inputs,
        nodes=nodes,
        video_label=video,
        audio_label=audio,
        duration_sec=duration_sec,
        layers=[layer.name for layer in present],
    )


def build_fallback_graph(
    background: BackgroundLayer,
    audio: Optional[AudioLayer],
    duration_sec: float,
) -> CompositionGraph:
    """Minimal graph for degraded renders: background plus whatever audio exists."""
    return build_composition_graph([background, audio], duration_sec)


def normalize_subreddit_label(subreddit: Optional[str]) -> str:
    """Render a subreddit as r/<name>; empty input stays empty."""
    name = (subreddit or "").strip()
    if name.startswith("r/"):
        name = name[2:]
    return f"r/{name}" if name else ""


def normalize_author_label(author: Optional[str]) -> str:
    """Drop a leading @; default to Anonymous."""
    name = (author or "").strip().lstrip("@")
    return name or "Anonymous"


def locate_banner_images(assets_dir: str) -> tuple[Optional[str], Optional[str]]:
    """Find the top and bottom banner images, preferring pre-rounded variants."""
    banners_dir = os.path.join(assets_dir, "banners")

    def first_existing(candidates: list[str]) -> Optional[str]:
        for filename in candidates:
            path = os.path.join(banners_dir, filename)
            if os.path.isfile(path):
                return path
        return None

    return first_existing(BANNER_TOP_FILES), first_existing(BANNER_BOTTOM_FILES)


class CompositionError(Exception):
    """Exception raised when layers cannot form a valid graph."""
    pass
