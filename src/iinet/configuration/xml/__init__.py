# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from abc import ABC, abstractmethod
from collections.abc import Callable
from inspect import Parameter, Signature
from os import PathLike, fspath
from typing import ClassVar, Protocol, Self, cast, dataclass_transform, overload, runtime_checkable

from lxml import etree

from .schema import get_validator

__all__ = (  # noqa: RUF022
    'Namespace',
    'XMLElement',
    'AnnotatedXMLElement',

    'DataAdapter',

    'Attribute',
    'OptionalDataElement',
)


# noinspection PyProtectedMember
type ETreeElement = etree._Element  # noqa: SLF001
type NSMap = dict[str | None, str]


class Namespace(str):
    __slots__ = 'prefix', 'schema'

    prefix: str | None
    schema: str | None

    def __new__(cls, namespace: str, /, *, prefix: str | None = None, schema: str | None = None) -> Self:
        self = super().__new__(cls, namespace)
        self.prefix = prefix
        self.schema = schema
        return self

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({super().__repr__()}, prefix={self.prefix!r}, schema={self.schema!r})'

    def __setattr__(self, name: str, value: object, /) -> None:
        if name in self.__slots__ and hasattr(self, name):
            raise AttributeError(f'{self.__class__.__name__} object attribute {name!r} is read-only')
        return super().__setattr__(name, value)


class XMLElement:  # noqa: PLW1641
    # Subclasses specify these via class parameters:
    #
    # class MyElement(XMLElement, name=..., namespace=...):
    #     ...

    _name_: ClassVar[str | None] = None
    _namespace_: ClassVar[Namespace | None] = None

    # Derived and internal attributes (these should not be overwritten in subclasses)

    _etree_element_: ETreeElement

    _tag_: ClassVar[str | None] = None
    _qualname_: ClassVar[str | None] = None
    _nsmap_: ClassVar[NSMap | None] = None

    _fields_: ClassVar[dict[str, 'FieldDescriptor']] = {}

    __signature__: ClassVar[Signature] = Signature()

    _all_arguments: ClassVar[frozenset[str]]
    _mandatory_arguments: ClassVar[frozenset[str]]

    _parser_: ClassVar[etree.XMLParser] = etree.XMLParser(remove_blank_text=True, resolve_entities=False, no_network=True)

    def __new__(cls, **kw: object) -> Self:
        if cls._tag_ is None:
            raise TypeError(f'Cannot instantiate abstract class {cls.__qualname__!r} that does not specify a name')
        if not cls._all_arguments.issuperset(kw):
            raise TypeError(f'got an unexpected keyword argument {next(iter(set(kw) - cls._all_arguments))!r}')
        if not cls._mandatory_arguments.issubset(kw):
            raise TypeError(f'missing a required keyword argument {next(iter(cls._mandatory_arguments - set(kw)))!r}')
        return super().__new__(cls)

    def __init__(self, **kw: object) -> None:
        self._etree_element_ = etree.Element(self._tag_, nsmap=self._nsmap_)  # type: ignore[arg-type]  # lxml stubs are a mess
        # set fields in definition order, so child elements are laid out consistently
        for name in self._fields_:
            if name in kw:
                setattr(self, name, kw[name])

    def __init_subclass__(cls, name: str | None = None, namespace: Namespace | None = None, **kw: object) -> None:
        super().__init_subclass__(**kw)

        if name is not None:
            cls._name_ = name
        if namespace is not None:
            cls._namespace_ = namespace

        if cls._name_ is not None:
            if cls._namespace_ is not None:
                cls._tag_ = f'{{{cls._namespace_}}}{cls._name_}'
                cls._qualname_ = f'{cls._namespace_.prefix}:{cls._name_}' if cls._namespace_.prefix is not None else cls._name_
                cls._nsmap_ = {cls._namespace_.prefix: cls._namespace_}
            else:
                cls._tag_ = cls._name_
                cls._qualname_ = cls._name_

        # all the fields on this element (both inherited and locally defined)
        cls._fields_ = cls._fields_ | {name: value for name, value in cls.__dict__.items() if isinstance(value, FieldDescriptor)}

        cls.__signature__ = Signature(parameters=[descriptor.signature_parameter for descriptor in cls._fields_.values()])
        cls._all_arguments = frozenset(cls.__signature__.parameters)
        cls._mandatory_arguments = frozenset(p.name for p in cls.__signature__.parameters.values() if p.default is Parameter.empty)

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({', '.join(f'{name}={getattr(self, name)!r}' for name in self._fields_)})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, XMLElement):
            return type(self) is type(other) and all(getattr(self, name) == getattr(other, name) for name in self._fields_)
        return NotImplemented

    @classmethod
    def from_xml(cls, element: ETreeElement) -> Self:
        if cls._tag_ is None:
            raise TypeError(f'Cannot instantiate abstract class {cls.__qualname__!r} that does not specify a name')
        if element.tag != cls._tag_:
            raise TypeError(f'The etree element tag does not match the {cls.__qualname__} element tag: {element.tag!r} != {cls._tag_!r}')
        instance = super().__new__(cls)
        instance._etree_element_ = element
        for field in cls._fields_.values():
            field.from_xml(instance)
        return instance

    @classmethod
    def from_string(cls, document: str | bytes) -> Self:
        element = etree.fromstring(document, cls._parser_)
        cls.validate(element)
        return cls.from_xml(element)

    @classmethod
    def from_file(cls, path: str | PathLike[str]) -> Self:
        element = etree.parse(fspath(path), cls._parser_).getroot()  # noqa: S320
        cls.validate(element)
        return cls.from_xml(element)

    @classmethod
    def validate(cls, element: ETreeElement) -> None:
        """Validate the element against the schema associated with the element namespace, if any"""
        if cls._namespace_ is None or cls._namespace_.schema is None:
            return
        get_validator(cls._namespace_.schema).check(element, cls._qualname_)

    def to_string(self, *, pretty_print: bool = True) -> str:
        return etree.tostring(self._etree_element_, encoding='unicode', pretty_print=pretty_print)


# Data conversion

@runtime_checkable
class DataAdapter[T](Protocol):
    """A protocol that describes an external adapter between a data type T and XML text"""

    @staticmethod
    def xml_parse(value: str, /) -> T:
        """Parse XML text into the data type"""
        ...

    @staticmethod
    def xml_build(value: T, /) -> str:
        """Build XML text from the data type"""
        ...


type DataAdapterType[T] = type[DataAdapter[T]]


# Field descriptors

class FieldDescriptor[D](ABC):
    name: str | None
    type: type[D]

    xml_parse: Callable[[str], D]
    xml_build: Callable[[D], str]

    def __init__(self, data_type: type[D], /, *, name: str | None = None, adapter: DataAdapterType[D] | None = None) -> None:
        self.name = None
        self.xml_name = name or ''
        self.type = data_type
        self.adapter = adapter
        if adapter is not None:
            self.xml_parse, self.xml_build = adapter.xml_parse, adapter.xml_build
        else:
            self.xml_parse, self.xml_build = data_type, str

    def __repr__(self) -> str:
        adapter_name = self.adapter.__qualname__ if self.adapter else None
        return f'{self.__class__.__name__}({self.type.__qualname__}, name={self.xml_name!r}, adapter={adapter_name})'

    def __set_name__(self, owner: type[XMLElement], name: str) -> None:
        if not issubclass(owner, XMLElement):
            raise TypeError(f'Can only use {self.__class__.__qualname__} descriptors on XMLElement objects')
        self.name = name
        self.xml_name = self.xml_name or name

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type)

    def check_type(self, value: object) -> None:
        if not isinstance(value, self.type):
            raise TypeError(f'the {self.name!r} field must be of type {self.type.__qualname__}')

    @abstractmethod
    def from_xml(self, instance: XMLElement) -> None:
        """Check that the instance's field can be extracted from its etree element"""
        raise NotImplementedError


class Attribute[D](FieldDescriptor[D]):
    """A mandatory XML attribute"""

    @overload
    def __get__(self, instance: None, owner: type[XMLElement]) -> Self: ...

    @overload
    def __get__(self, instance: XMLElement, owner: type[XMLElement] | None = None) -> D: ...

    def __get__(self, instance: XMLElement | None, owner: type[XMLElement] | None = None) -> Self | D:
        if instance is None:
            return self
        try:
            return self.xml_parse(cast(str, instance._etree_element_.attrib[self.xml_name]))
        except KeyError as exc:
            raise AttributeError(f'mandatory attribute {self.name!r} is missing') from exc

    def __set__(self, instance: XMLElement, value: D) -> None:
        self.check_type(value)
        instance._etree_element_.set(self.xml_name, self.xml_build(value))

    def __delete__(self, instance: XMLElement) -> None:
        raise AttributeError(f'mandatory attribute {self.name!r} cannot be deleted')

    def from_xml(self, instance: XMLElement) -> None:
        if self.xml_name not in instance._etree_element_.attrib:
            raise ValueError(f'Missing mandatory attribute {self.xml_name!r} from {instance._qualname_!r}')
        try:
            self.__get__(instance)
        except ValueError as exc:
            raise ValueError(f'Invalid value for attribute {self.xml_name!r} from {instance._qualname_!r}: {exc!s}') from exc


class OptionalDataElement[D](FieldDescriptor[D]):
    """
    An optional child element that holds text data.

    When the element is missing, reading the field returns the result of
    default_factory if one was given, else the default. Use default_factory
    for mutable defaults, so every instance gets its own copy.
    """

    xml_tag: str
    xml_qualname: str

    def __init__(self, data_type: type[D], /, *, name: str | None = None, default: D | None = None, default_factory: Callable[[], D] | None = None, adapter: DataAdapterType[D] | None = None) -> None:
        if default is not None and default_factory is not None:
            raise TypeError('cannot specify both default and default_factory')
        super().__init__(data_type, name=name, adapter=adapter)
        self.default = default
        self.default_factory = default_factory

    def __set_name__(self, owner: type[XMLElement], name: str) -> None:
        super().__set_name__(owner, name)
        namespace = owner._namespace_
        self.xml_tag = f'{{{namespace}}}{self.xml_name}' if namespace is not None else self.xml_name
        self.xml_qualname = f'{namespace.prefix}:{self.xml_name}' if namespace is not None and namespace.prefix is not None else self.xml_name

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type | None, default=None)

    @overload
    def __get__(self, instance: None, owner: type[XMLElement]) -> Self: ...

    @overload
    def __get__(self, instance: XMLElement, owner: type[XMLElement] | None = None) -> D | None: ...

    def __get__(self, instance: XMLElement | None, owner: type[XMLElement] | None = None) -> Self | D | None:
        if instance is None:
            return self
        elements = self.elements(instance)
        if elements:
            return self.parse_element(elements[0])
        return self.default_factory() if self.default_factory is not None else self.default

    def __set__(self, instance: XMLElement, value: D | None) -> None:
        self.__delete__(instance)
        if value is not None:
            instance._etree_element_.append(self.build_element(value))

    def __delete__(self, instance: XMLElement) -> None:
        for element in self.elements(instance):
            instance._etree_element_.remove(element)

    def elements(self, instance: XMLElement) -> list[ETreeElement]:
        return [element for element in instance._etree_element_ if element.tag == self.xml_tag]

    def parse_element(self, element: ETreeElement) -> D:
        try:
            return self.xml_parse(element.text or '')
        except ValueError as exc:
            raise ValueError(f'Invalid value for element {self.xml_qualname!r}: {exc!s}') from exc

    def build_element(self, value: D) -> ETreeElement:
        self.check_type(value)
        element = etree.Element(self.xml_tag)
        element.text = self.xml_build(value)
        return element

    def from_xml(self, instance: XMLElement) -> None:
        elements = self.elements(instance)
        if len(elements) > 1:
            raise ValueError(f'Excess elements for {self.xml_qualname!r}')
        if elements:
            self.parse_element(elements[0])


field_specifiers = (Attribute, OptionalDataElement)


@dataclass_transform(kw_only_default=True, field_specifiers=field_specifiers)  # type: ignore[misc]
class AnnotatedXMLElement(XMLElement):
    """
    A static type checker friendly variant of XMLElement.

    The element definition needs to include both an annotation and the
    descriptor definition for each field:

      address: Attribute[str] = Attribute(str)
      default_tags: OptionalDataElement[Tags] = OptionalDataElement(Tags, name='default-tags', adapter=TagsAdapter)

    With these, static type checkers will be able to infer the __init__
    signature and check the arguments used to create instances.
    """


del field_specifiers
