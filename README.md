# zkasm

`zkasm` is a library. It takes machine descriptions written in a small assembly
language for zero-knowledge virtual machines and turns them into PIL
(Polynomial Identity Language) constraint systems. It also has helpers for
handling the output of conventional assemblers: running a line parser over a
listing, extracting data objects and dropping code that cannot be reached.

The package has no runtime dependencies.

## Install

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Pipeline

The input is a parsed assembly file, `zkasm.parsed_asm.ASMFile`. It holds
`Machine` objects, and each machine holds statements such as `Degree`,
`RegisterDeclaration`, `InstructionDeclaration`, `InlinePil` and
`FunctionDeclaration`. The file then goes through these stages:

1. **Macro expansion**: `zkasm.macro_expansion.expand` replaces macro calls
   in inline PIL blocks and instruction bodies with the bodies of their
   definitions. Problems are raised as `MacroError`. `MacroExpander` can also
   be used by itself on a list of PIL statements with `expand_macros`.
2. **Type checking**: `zkasm.type_check.check` sorts machine statements into
   registers, instructions, constraints and functions. It collects every
   problem it finds and raises them together in one `TypeCheckError`, whose
   `errors` attribute holds the messages. It rejects duplicate machine names,
   submachines, more than one `@pc` register, and functions with a body in a
   machine that has no pc.
3. **ROM generation**: `zkasm.romgen.generate_rom` makes the body of the
   `main` function of each machine that has a pc into that machine's ROM. It
   raises `RomGenerationError` when there is not exactly one function, when
   that function is not named `main`, or when it has inputs or outputs.
4. **Batching**: `zkasm.batcher.batch` groups ROM statements that can share
   one execution-trace row. At present only labels are merged with the
   statement that follows them. It logs the savings at debug level through
   the `logging` module.

`zkasm.analysis.analyze` runs all four stages in that order and returns a
`zkasm.asm_analysis.AnalysisASMFile`.

`zkasm.asm_to_pil.compile` then turns the analysed file into a
`zkasm.pil_object.PILGraph`. If the file has a single machine, that machine is
compiled. Otherwise the machine named `Main` is compiled. The result is one
`PilObject` at the location `main`, holding the degree and the PIL
statements. The degree is 1024 unless the machine declares its own.
`compile_machine` and `ASMPILConverter.convert_machine` compile a single
machine to a `ConversionOutput`. Invalid input raises
`zkasm.rom.CompilationError`.

Arithmetic on ROM constants is done in a `zkasm.rom.PrimeField`. Its modulus
is the Goldilocks prime unless you give another.

```python
from zkasm.analysis import analyze
from zkasm.asm_to_pil import compile
from zkasm.rom import PrimeField

field = PrimeField(0xFFFFFFFF00000001)  # Goldilocks, also the default
analysed = analyze(asm_file)            # asm_file: zkasm.parsed_asm.ASMFile
graph = compile(analysed, field)
print(graph)
```

Printing a `PILGraph`, an `AnalysisASMFile` or any syntax node gives its
textual PIL or assembly form.

## Building expressions

`zkasm.parsed` defines the PIL expression and statement types and a set of
constructors for them:

```python
from zkasm.parsed import build_add, build_number, build_sub, direct_reference, next_reference

update = build_sub(next_reference("pc"), build_add(direct_reference("pc"), build_number(1)))
print(update)   # (pc' - (pc + 1))
```

`postvisit_expression` and `postvisit_expressions_in_statement` rewrite
expression trees bottom-up. They return new trees and do not change the
input. `ArrayExpression` values (`ArrayValue`, `RepeatedValue`, `Concat`)
support `concat`, `pad_with_zeroes`, `pad_with_last` and `solve`.

## Frontend helpers

The `zkasm.frontend` package deals with assembler output:

- `zkasm.frontend.syntax`: statements (`Label`, `Directive`, `Instruction`),
  arguments (`RegisterArg`, `RegOffset`, `StringLiteral`, `ExpressionArg`)
  and expressions (`Number`, `Symbol`, `UnaryOp`, `BinaryOp`, `FunctionOp`).
  It also has `unescape_string`, which turns a quoted literal into bytes.
- `zkasm.frontend.parser`: `parse_asm(parser, text)` trims each non-empty
  line, passes it to an object that follows the `Parser` protocol, and joins
  the resulting statements.
- `zkasm.frontend.data`: `extract_data_objects` collects `.word`, `.byte`,
  `.ascii`, `.asciz` and `.zero` data into `Direct`, `Zero` and `Reference`
  values. It returns the objects sorted by name, together with their
  declaration order.
- `zkasm.frontend.reachability`: `filter_reachable_from(label, statements,
  objects)` resolves `.set` aliases and returns only the statements and
  objects that can be reached from `label`. It raises `ReachabilityError` for
  unknown instructions, missing labels, and duplicate or cyclic `.set`
  directives.
- `zkasm.frontend.compiler`: label escaping, quoting and number helpers, and
  the `Compiler` protocol for classes that turn assembly sources into program
  text.

## What the package does not do

- It has no parser for assembly or PIL source text. You build an `ASMFile`
  from the classes in `zkasm.parsed_asm` and `zkasm.parsed`. A frontend
  `Parser` is something you supply.
- It has no command-line tool.
- It does not evaluate fixed columns, generate witnesses or produce proofs.
  Its output is PIL statements.
- It does not provide a `Compiler` implementation for any particular
  architecture, only the protocol and helpers.