# lunavm

lunavm runs a small subset of Lua. Source text goes through four stages:

1. a lexer (`lunavm.lexer`), which turns the text into tokens
2. a recursive-descent parser (`lunavm.parser`), which builds a syntax tree (`lunavm.syntax_tree`)
3. a compiler (`lunavm.compiler`), which turns the tree into bytecode
4. a stack-based virtual machine (`lunavm.vm`), which executes the bytecode

## Installation

```
pip install .
```

## Command line

```
lunavm script.lua
lunavm --ast script.lua
```

With a file name alone, the command runs the file. It exits with status 0
when the program runs to the end, and with status 1 when:

- no file is given, or more than one
- the file cannot be opened or is not valid UTF-8
- the source cannot be split into tokens or compiled
- an error occurs while the program runs

With `--ast`, the command does not run the file. It prints the parsed syntax
tree, one node per line, under a `=== AST ===` heading, and exits with
status 0 unless the file cannot be read or tokenized.

Syntax errors are reported on standard error as
`ParseError: <message> at line <n>`; parsing then resumes at the next
statement, so the rest of the file is still processed.

## Language

- **Values:** numbers (always floating point), strings, booleans and `nil`.
  Only `nil` and `false` are false.
- **Strings:** single quotes, double quotes, or long brackets `[[ ... ]]`.
  There are no escape sequences.
- **Comments:** `--` to the end of the line, and `--[[ ... ]]` block comments.
- **Variables:** `local name [= value]`, assignment `name = value` to locals
  or globals. Reading an unset global gives `nil`.
- **Arithmetic:** `+ - * / % ^` and unary `-`, on numbers only.
- **Concatenation:** `..`, on strings only.
- **Length:** `#`, on strings only.
- **Comparison:** `== ~= < <= > >=`; ordering works on numbers only.
- **Logic:** `and`, `or`, `not`.
- **Control flow:** `if` / `elseif` / `else`, `while`, `repeat ... until`,
  `do ... end`, numeric `for i = a, b [, step]`.
- **Functions:** `function name(...)`, `local function name(...)`,
  anonymous `function` expressions, and `return` with at most one value.
  Missing arguments are `nil`; extra arguments are dropped.
  Calls may nest at most 64 deep.

Built-in globals:

- `print(...)` writes its arguments, joined with no separator, and a newline.
  Numbers print with up to 14 significant digits.
- `type(v)` returns `"nil"`, `"boolean"`, `"number"`, `"string"`, or
  `"object"` for functions.
- `input()` reads the next non-blank line from standard input, without
  leading whitespace or the trailing newline; it returns `""` at end of input.
- `rand()` returns a number in `[0, 1)`.

## Example

```lua
local function square(x)
  return x * x
end

for i = 1, 3 do
  print(square(i))
end
```

## What is not supported

The lexer and parser accept some constructs that the compiler rejects with a
`CompileError`:

- `break`
- generic `for ... in` loops
- field access `t.name` and index access `t[k]`

There are no tables and no table constructors, no closures over enclosing
locals (a nested function sees only its own locals and globals), no multiple
assignment or multiple return values, no varargs, no method calls with `:`,
and no standard library beyond the four built-ins above.

## Library use

```python
import io
from lunavm.vm import InterpretResult, run_source

out = io.StringIO()
result = run_source('print("hello" .. " world")', stdout=out, stdin=io.StringIO())
assert result is InterpretResult.OK
print(out.getvalue())
```

`run_source` returns an `InterpretResult`: `OK`, `COMPILE_ERROR` (lexing or
compiling failed) or `RUNTIME_ERROR`. Lex, parse and compile errors are
reported on standard error.

Each stage can also be used on its own:

```python
from lunavm.lexer import tokenize
from lunavm.parser import Parser
from lunavm.cli import format_ast
from lunavm.compiler import compile_program
from lunavm.vm import VM

tokens = tokenize("local x = 1 print(x + 1)")
parser = Parser(tokens)
statements = parser.parse()
print(parser.errors)          # ParseError instances, if any
print(format_ast(statements))

function = compile_program(statements)
vm = VM()
vm.define_native("twice", lambda args: args[0] * 2)
vm.interpret(function)
```

`VM` takes optional `stdout`, `stdin` and `stderr` streams and a
`random.Random` for `rand`. When a runtime error occurs, `interpret` reports
it on `stderr`, stores it in `vm.last_error` and returns
`InterpretResult.RUNTIME_ERROR`.

`lunavm.syntax_tree.walk(node)` yields a node and every node below it.

`lunavm.objects` holds the shared runtime pieces: `Chunk`, `OpCode`,
`LuaFunction`, `NativeFunction`, and the helpers `values_equal`, `is_falsey`
and `format_value`.

Errors:

- `lunavm.lexer.LexError` is raised for bad source text.
- `lunavm.parser.ParseError` is reported and collected by `Parser.parse`.
- `lunavm.compiler.CompileError` is raised when compilation fails.
- `lunavm.vm.LuaRuntimeError` describes an error while running.

## Tests

```
pip install ".[test]"
pytest
```