from __future__ import annotations

from betwixt.assembly import assemble, assemble_pass
from betwixt.directive import Role, WriteMode
from betwixt.flavors.markdown import MarkdownFlavor
from betwixt.scope import ResolvedConfig, ResolvedFragment, ScopeNode
from betwixt.traversal import traverse


_NODE = ScopeNode(level=0)


def _fragment(index: int, content: str, **config) -> ResolvedFragment:
    return ResolvedFragment(
        index=index,
        language=None,
        content=content,
        node=_NODE,
        config=ResolvedConfig(**config),
        line=index + 1,
    )


def test_body_fragments_keep_document_order() -> None:
    plan = assemble(
        [
            _fragment(0, "a\n", destination="out.txt"),
            _fragment(1, "b\n", destination="out.txt"),
            _fragment(2, "c\n", destination="out.txt"),
        ]
    )
    (destination,) = plan.destinations
    assert destination.final_bytes() == b"a\nb\nc\n"
    assert [operation.fragment_index for operation in destination.operations] == [0, 1, 2]


def test_roles_partition_regardless_of_interleaving() -> None:
    plan = assemble(
        [
            _fragment(0, "body1 ", destination="f", role=Role.BODY),
            _fragment(1, "post1 ", destination="f", role=Role.POSTFIX),
            _fragment(2, "pre1 ", destination="f", role=Role.PREFIX),
            _fragment(3, "body2 ", destination="f", role=Role.BODY),
            _fragment(4, "pre2 ", destination="f", role=Role.PREFIX),
            _fragment(5, "post2", destination="f", role=Role.POSTFIX),
        ]
    )
    assert plan.destinations[0].final_bytes() == b"pre1 pre2 body1 body2 post1 post2"


def test_prefix_overwrite_then_body_append() -> None:
    plan = assemble(
        [
            _fragment(
                0,
                "package main\n",
                destination="main.go",
                role=Role.PREFIX,
                write_mode=WriteMode.OVERWRITE,
            ),
            _fragment(1, "func main() {}\n", destination="main.go"),
        ]
    )
    (destination,) = plan.destinations
    assert [(operation.role, operation.mode) for operation in destination.operations] == [
        (Role.PREFIX, WriteMode.OVERWRITE),
        (Role.BODY, WriteMode.APPEND),
    ]
    assert destination.final_bytes(existing=b"stale") == b"package main\nfunc main() {}\n"


def test_later_overwrite_discards_earlier_operations() -> None:
    plan = assemble(
        [
            _fragment(0, "a", destination="f"),
            _fragment(1, "b", destination="f", write_mode=WriteMode.OVERWRITE),
            _fragment(2, "c", destination="f"),
        ]
    )
    assert plan.destinations[0].final_bytes(existing=b"old") == b"bc"


def test_append_only_destination_keeps_existing_bytes() -> None:
    plan = assemble([_fragment(0, "new", destination="f")])
    assert plan.destinations[0].final_bytes(existing=b"old ") == b"old new"


def test_tag_filter_keeps_only_matching_tags() -> None:
    fragments = [
        _fragment(0, "a", destination="f", tag="a"),
        _fragment(1, "b", destination="f", tag="b"),
        _fragment(2, "none", destination="f"),
    ]
    assert assemble(fragments, tag_filter="b").destinations[0].final_bytes() == b"b"
    assert assemble(fragments, tag_filter="").destinations[0].final_bytes() == b"abnone"
    assert assemble(fragments).destinations[0].final_bytes() == b"abnone"
    assert assemble(fragments, tag_filter="zzz").destinations == ()


def test_ignored_fragments_are_dropped_before_routing() -> None:
    plan = assemble(
        [
            _fragment(0, "skip", destination="f", ignore=True),
            _fragment(1, "skip-unrouted", ignore=True),
            _fragment(2, "unrouted"),
            _fragment(3, "kept", destination="f"),
        ]
    )
    assert plan.destinations[0].final_bytes() == b"kept"
    assert [fragment.index for fragment in plan.unrouted] == [2]


def test_tag_filter_applies_before_unrouted_check() -> None:
    plan = assemble([_fragment(0, "x", tag="other")], tag_filter="mine")
    assert plan.unrouted == ()


def test_destinations_group_by_literal_path_in_first_appearance_order() -> None:
    plan = assemble(
        [
            _fragment(0, "1", destination="b.py"),
            _fragment(1, "2", destination="./a.py"),
            _fragment(2, "3", destination="a.py"),
            _fragment(3, "4", destination="b.py"),
        ],
        declared_destinations=["b.py", "./a.py", "a.py"],
    )
    assert [item.destination for item in plan.destinations] == ["b.py", "./a.py", "a.py"]
    assert plan.plan_for("b.py").final_bytes() == b"14"
    assert plan.plan_for("missing") is None
    assert plan.declared_destinations == ("b.py", "./a.py", "a.py")


def test_prefix_only_destination_is_planned_without_body() -> None:
    plan = assemble([_fragment(0, "#!/bin/sh\n", destination="run.sh", role=Role.PREFIX)])
    assert plan.destinations[0].body_count == 0
    assert plan.destinations[0].final_bytes() == b"#!/bin/sh\n"


def test_writer_input_shape() -> None:
    plan = assemble(
        [
            _fragment(0, "x", destination="f", write_mode=WriteMode.OVERWRITE),
            _fragment(1, "y", destination="g"),
        ]
    )
    assert plan.writer_input() == [
        ("f", [(b"x", WriteMode.OVERWRITE)]),
        ("g", [(b"y", WriteMode.APPEND)]),
    ]


def test_outer_boilerplate_brackets_nested_body(github: MarkdownFlavor) -> None:
    text = (
        "<?btxt+go filename='main.go' pre=|||func main() {\n||| post=|||}\n||| ?>\n"
        "```btxt\n"
        "<?btxt filename='main.go' ?>\n"
        "'''\n  body()\n'''\n"
        "```\n"
    )
    plan = assemble_pass(traverse(text, github))
    destination = plan.plan_for("main.go")
    assert [operation.role for operation in destination.operations] == [
        Role.PREFIX,
        Role.BODY,
        Role.POSTFIX,
    ]
    assert destination.final_bytes() == b"func main() {\n  body()\n}\n"


def test_assemble_pass_merges_nested_documents(github: MarkdownFlavor) -> None:
    text = (
        "```btxt\n"
        "<?btxt filename='out.txt' ?>\n"
        "'''\ninner\n'''\n"
        "```\n"
        "<?btxt filename='out.txt' ?>\n"
        "```\nouter\n```\n"
    )
    plan = assemble_pass(traverse(text, github))
    assert plan.plan_for("out.txt").final_bytes() == b"outer\ninner\n"
    assert plan.declared_destinations == ("out.txt",)


def test_assemble_pass_applies_tag_filter_to_nested_documents(github: MarkdownFlavor) -> None:
    text = (
        "<?btxt filename='out.txt' ?>\n"
        "```btxt\n"
        "<?btxt filename='out.txt' tag='keep' ?>\n"
        "'''\nkept\n'''\n"
        "<?btxt tag='drop' ?>\n"
        "'''\ndropped\n'''\n"
        "```\n"
    )
    plan = assemble_pass(traverse(text, github), tag_filter="keep")
    assert plan.plan_for("out.txt").final_bytes() == b"kept\n"
